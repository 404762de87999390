"""
Exact integer split of a reward pool by weight.

Each address first gets floor(pool * weight / total_weight). The units left
over go one each to the largest remainders, ties broken by ascending
address, so the shares always add up to the pool.
"""

from typing import Dict

from .types import address_key


def allocate(pool: int, weights: Dict[str, int]) -> Dict[str, int]:
    """
    Split ``pool`` across addresses proportionally to ``weights``.

    Addresses with a non-positive weight get nothing. Returns an empty
    mapping when the pool is empty or nobody has weight.
    """
    weighted = {address: weight for address, weight in weights.items() if weight > 0}
    total_weight = sum(weighted.values())
    if pool <= 0 or total_weight == 0:
        return {}

    shares: Dict[str, int] = {}
    remainders = []
    for address, weight in weighted.items():
        share, remainder = divmod(pool * weight, total_weight)
        shares[address] = share
        remainders.append((remainder, address))

    leftover = pool - sum(shares.values())
    remainders.sort(key=lambda item: (-item[0], address_key(item[1])))
    for _, address in remainders[:leftover]:
        shares[address] += 1

    return shares
