"""
Closure of related commits over the bipartite record ↔ commit graph.

Two commits are related when some record has entries in both. Starting from
a seed set, the closure grows until no new commit is reachable. Both visited
sets only grow and the graph is finite, so the loop terminates.
"""
from typing import Callable, Hashable, Iterable, Set, Tuple

MembersOf = Callable[[Set[str]], Set[Hashable]]
CommitsOf = Callable[[Set[Hashable]], Set[str]]


def related_commits(
    seed_commits: Iterable[str],
    members_of: MembersOf,
    commits_of: CommitsOf,
) -> Tuple[Set[str], Set[Hashable]]:
    """
    Compute the connected component reachable from `seed_commits`.

    Args:
        seed_commits: commit ids to start from.
        members_of: commit ids → identities referenced by their member entries.
        commits_of: identities → commit ids referenced by their entries.

    Returns:
        (commit ids, identities) visited.
    """
    commits: Set[str] = set(seed_commits)
    identities: Set[Hashable] = set()

    pending_commits = set(commits)
    while pending_commits:
        new_identities = set(members_of(pending_commits)) - identities
        identities |= new_identities
        if not new_identities:
            break
        pending_commits = set(commits_of(new_identities)) - commits
        commits |= pending_commits

    return commits, identities
