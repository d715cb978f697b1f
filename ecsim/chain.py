from .errors import InvariantViolation

## Owner of the genesis blocks
GENESIS_OWNER = -1


class Block:
    """Represents a block (or a null block) in the simulated chain

    Args:
        nonce (int): Unique ID of the block within its trial
        parents (Tipset): Tipset this block extends, None only for the genesis root
        owner (int): ID of the miner who mined it, GENESIS_OWNER for genesis blocks
        height (int): Height of the parent tipset + 1, 0 for genesis blocks
        null (boolean): True if the miner lost the election for this slot
        parent_weight (int): Weight of the nearest live tipset this block descends from
        seed (int): Ticket drawn for this block

    Attributes:
        nonce (int): Unique ID of the block within its trial
        parents (Tipset): Parent tipset, shared by every block of the tipset this block belongs to
        owner (int): ID of the creator
        height (int): Height of the block
        null (boolean): A null block is never broadcast, it only extends its owner's private forks
        parent_weight (int): Weight inherited from the live ancestry of this block
        seed (int): Ticket of this block. Used to order tipsets and as input to the next tickets
        in_head (boolean): True once the block has been part of the heaviest tipset of the trial

    """

    def __init__(self, nonce, parents, owner, height, null, parent_weight, seed, in_head=False):
        self.nonce = nonce
        self.parents = parents
        self.owner = owner
        self.height = height
        self.null = null
        self.parent_weight = parent_weight
        self.seed = seed
        self.in_head = in_head

    def __repr__(self):
        return "Block(b{} m{} h{}{})".format(self.nonce, self.owner, self.height, " null" if self.null else "")

    def live_parents(self):
        """Walks back until a tipset with a live block is found. Tipsets with null blocks
        only ever contain that one block since null blocks are mined privately

        Args:
            None

        Returns:
            The nearest ancestor Tipset whose blocks are not null

        """
        parents = self.parents
        while parents is not None and parents.blocks[0].null:
            parents = parents.blocks[0].parents
        if parents is None:
            raise InvariantViolation("Block b{} has no live ancestor".format(self.nonce))
        return parents

    def to_dict(self):
        """Serializable fields of the block. The parent tipset is referenced by name"""
        return {
            "nonce": self.nonce,
            "tipset": self.parents.name if self.parents is not None else None,
            "owner": self.owner,
            "height": self.height,
            "null": self.null,
            "parentWeight": self.parent_weight,
            "seed": self.seed,
            "inHead": self.in_head,
        }


def sort_blocks(blocks):
    """Orders blocks by ticket. Equal tickets fall back to the nonce so the order is total"""
    return sorted(blocks, key=lambda blk: (blk.seed, blk.nonce))


def tipset_key(blocks):
    return tuple(sorted(blk.nonce for blk in blocks))


def parent_key(block):
    return block.parents.key if block.parents is not None else None


class Tipset:
    """A maximal set of blocks with the same height and the same parent tipset

    Args:
        blocks (list of Block): Member blocks, in any order

    Attributes:
        blocks (list of Block): Member blocks sorted by ascending ticket. The order defines
            the forks a rational miner can extend
        key (tuple of int): Sorted nonces of the members. Identity of the tipset used for lookups
        name (str): Nonces in ticket order joined by '-'
        min_ticket (int): Smallest ticket in the tipset, sampled by the next elections
        weight (int): Parent weight plus the number of live members
        was_head (boolean): True if this tipset has been the head of the chain

    """

    def __init__(self, blocks):
        blocks = list(blocks)
        if len(blocks) == 0:
            raise InvariantViolation("Cannot build a tipset from no blocks")
        first = blocks[0]
        for blk in blocks[1:]:
            if blk.height != first.height or parent_key(blk) != parent_key(first):
                raise InvariantViolation(
                    "Blocks b{} (height {}, parents {}) and b{} (height {}, parents {}) cannot share a tipset".format(
                        first.nonce, first.height, parent_key(first), blk.nonce, blk.height, parent_key(blk)))
        if len(blocks) > 1 and any(blk.null for blk in blocks):
            raise InvariantViolation(
                "Null blocks are mined privately and cannot share a tipset: {}".format([blk.nonce for blk in blocks]))

        self.blocks = sort_blocks(blocks)
        self.key = tipset_key(self.blocks)
        self.name = "-".join(str(blk.nonce) for blk in self.blocks)
        self.min_ticket = self.blocks[0].seed
        # all members share their parents so they share the parent weight
        self.weight = self.blocks[0].parent_weight
        if not self.blocks[0].null:
            self.weight += len(self.blocks)
        self.was_head = False

    def __repr__(self):
        return "Tipset({} w{})".format(self.name, self.weight)

    def __len__(self):
        return len(self.blocks)

    @property
    def height(self):
        return self.blocks[0].height

    @property
    def parents(self):
        return self.blocks[0].parents

    @property
    def null(self):
        return self.blocks[0].null


def all_tipsets(blocks):
    """Groups a set of newly mined blocks into the tipsets they form

    Args:
        blocks (list of Block): Blocks published in one round

    Returns:
        List of Tipset, one per distinct (height, parent tipset) pair, in order of first appearance

    """
    groups = {}
    for blk in blocks:
        groups.setdefault((blk.height, parent_key(blk)), []).append(blk)
    return [Tipset(group) for group in groups.values()]


def forks_from_tipset(tipset):
    """Returns the n non-slashable forks of a tipset of n blocks: for every ticket, the
    tipset holding that block and every block with a larger ticket. Dropping the smallest
    tickets cannot be told apart from not having seen them

    Args:
        tipset (Tipset): Tipset to fork

    Returns:
        List of Tipset, the i-th one holding the blocks i.. of the tipset

    """
    return [Tipset(tipset.blocks[i:]) for i in range(len(tipset.blocks))]


def lookback_tipset(tipset, lbp):
    """Walks back lbp - 1 parent links to find the tipset sampled for leader election.
    With lbp == 1 the tipset itself is returned

    Args:
        tipset (Tipset): Tipset being mined on
        lbp (int): Lookback parameter

    Returns:
        The ancestor Tipset

    """
    for _ in range(lbp - 1):
        if tipset.parents is None:
            raise InvariantViolation("Lookback of {} walked past genesis from tipset {}".format(lbp, tipset.name))
        tipset = tipset.parents
    return tipset
