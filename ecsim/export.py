import json
import logging
import os
import time

import matplotlib.patches as mpatches
import matplotlib.pyplot as plt
import networkx as nx

from .chain import GENESIS_OWNER

logger = logging.getLogger(__name__)


def chain_name(round_count, lbp, miner_count, trial_number, timestamp=None):
    """Name shared by all the files exported for one trial"""
    if timestamp is None:
        timestamp = int(time.time())
    return "rds={}-lbp={}-mins={}-ts={}-{}".format(round_count, lbp, miner_count, timestamp, trial_number)


def block_label(block):
    return "b{} (m{})".format(block.nonce, block.owner)


def write_chain(tracker, name, output_dir):
    """Writes a json snapshot of a trial from which the chain tracker can be rebuilt

    Args:
        tracker (ChainTracker): A finished trial
        name (str): File name without extension
        output_dir (str): Folder to write to, created if missing

    Returns:
        Path of the written file

    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "{}.json".format(name))
    logger.info("Writing out %s", path)
    snapshot = {
        "blocks": tracker.to_records(),
        "miners": [m.to_dict() for m in tracker.miners],
        "maxHeight": tracker.max_height,
        "head": tracker.head.name if tracker.head is not None else None,
    }
    with open(path, 'w') as fp:
        json.dump(snapshot, fp, indent="\t")
    return path


def write_dot(tracker, name, output_dir):
    """Writes a dot graph of the published blocks, one rank per height. Blocks that have been
    in the head are drawn in red

    Args:
        tracker (ChainTracker): A finished trial
        name (str): File name without extension
        output_dir (str): Folder to write to, created if missing

    Returns:
        Path of the written file

    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "{}.dot".format(name))
    logger.info("Drawing graph %s", path)
    lines = ["digraph G {", "\t{", "\t\tnode [shape=plaintext];"]
    # height index alongside the block graph
    lines.append("\t\t" + " -> ".join(str(h) for h in range(tracker.max_height + 2)) + ";")
    lines.append("\t}")
    lines.append("\tnode [shape=box];")
    for height in range(tracker.max_height + 1, -1, -1):
        blocks = tracker.live_blocks_by_height.get(height)
        if not blocks:
            continue
        ranked = []
        for blk in blocks:
            if blk.in_head:
                ranked.append(" \"{}\" [color=\"red\", style=\"bold\"];".format(block_label(blk)))
            else:
                ranked.append(" \"{}\";".format(block_label(blk)))
        lines.append("\t{{ rank = same; {};{} }}".format(height, "".join(ranked)))
        for blk in blocks:
            # genesis has no parents
            if blk.owner == GENESIS_OWNER:
                continue
            for parent in blk.live_parents().blocks:
                lines.append("\t\"{}\" -> \"{}\";".format(block_label(blk), block_label(parent)))
    lines.append("}")
    with open(path, 'w') as fp:
        fp.write("\n".join(lines) + "\n")
    return path


def block_tree(tracker):
    """Builds the networkx tree of published blocks, edges point from a block to its live parents

    Args:
        tracker (ChainTracker): A finished trial

    Returns:
        networkx.DiGraph with 'height' and 'status' node attributes

    """
    tree = nx.DiGraph()
    for blk in tracker.live_blocks():
        if blk.owner == GENESIS_OWNER:
            status = "GENESIS_block"
        elif blk.in_head:
            status = "Head_block"
        else:
            status = "Branch_block"
        tree.add_node(block_label(blk), height=blk.height, status=status)
    for blk in tracker.live_blocks():
        if blk.owner == GENESIS_OWNER:
            continue
        for parent in blk.live_parents().blocks:
            tree.add_edge(block_label(blk), block_label(parent))
    return tree


def draw_chain(tracker, name, output_dir, show_plots=False):
    """Creates a graphical representation of the block tree of a trial

    Args:
        tracker (ChainTracker): A finished trial
        name (str): File name without extension
        output_dir (str): Folder to write to, created if missing
        show_plots (boolean): Also display the plot

    Returns:
        Path of the written png

    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "{}.png".format(name))
    tree = block_tree(tracker)
    genesis_color, head_color, branch_color = 'yellow', 'red', 'blue'
    colors = {"GENESIS_block": genesis_color, "Head_block": head_color, "Branch_block": branch_color}
    node_color = [colors[data.get("status", "Branch_block")] for _, data in tree.nodes(data=True)]
    fig = plt.figure(figsize=(10, 10))
    pos = nx.multipartite_layout(tree, subset_key="height", align="horizontal")
    # oldest blocks at the top
    pos = {node: (x, -y) for node, (x, y) in pos.items()}
    nx.draw_networkx(tree, pos=pos, with_labels=False, node_size=10, node_color=node_color, width=0.5, arrowsize=5)
    genesis_patch = mpatches.Patch(color=genesis_color, label='Genesis block')
    head_patch = mpatches.Patch(color=head_color, label='Head block')
    branch_patch = mpatches.Patch(color=branch_color, label='Branch block')
    plt.legend(handles=[genesis_patch, head_patch, branch_patch], loc="upper right")
    plt.savefig(path, dpi=300, bbox_inches='tight')
    logger.info("Saved block tree to %s", path)
    if show_plots:
        plt.show()
    plt.close(fig)
    return path


def plot_sweep(results, output_dir, show_plots=False):
    """Plots the average live forks per round against the lookback parameter, one line per
    miner population

    Args:
        results (dict of int to dict of int to float): Output of stats.run_sweep
        output_dir (str): Folder to write to, created if missing
        show_plots (boolean): Also display the plot

    Returns:
        Path of the written png

    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "lbp_sweep.png")
    fig = plt.figure(figsize=(10, 5))
    for miner_count, by_lbp in sorted(results.items()):
        lbps = sorted(by_lbp)
        plt.plot(lbps, [by_lbp[lbp] for lbp in lbps], marker='o', label="{} miners".format(miner_count))
    plt.xlabel("Lookback parameter")
    plt.ylabel("Average live forks per round")
    plt.title("Live forks against lookback")
    plt.legend(loc="upper left")
    plt.savefig(path, dpi=300, bbox_inches='tight')
    if show_plots:
        plt.show()
    plt.close(fig)
    return path
