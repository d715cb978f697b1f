"""Expected Consensus simulation with rational miners"""

from .chain import Block, Tipset, all_tipsets, forks_from_tipset, lookback_tipset
from .errors import ConfigError, InvariantViolation, SimulationError, TrialFailed
from .miner import RationalMiner
from .simulator import Simulator, run_trial, run_trials
from .tickets import TICKET_SPACE, TicketGenerator
from .tracker import ChainTracker

__version__ = "0.1.0"
