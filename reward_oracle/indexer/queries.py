"""
GraphQL queries for the indexed-data service.

Every query is anchored at a block and ordered by the monotonic ``index``
field so that first/skip paging is stable across requests. The result list
is always aliased as ``entries``.
"""

DEBT_ENTRIES_QUERY = """
query DebtEntries($block: Int!, $first: Int!, $skip: Int!) {
  entries: debtEntries(
    block: { number: $block }
    first: $first
    skip: $skip
    orderBy: index
    orderDirection: asc
  ) {
    id
    index
    address
    debtFactor
    debtProportion
    timestamp
  }
}
"""

EXCHANGE_ENTRIES_QUERY = """
query ExchangeEntries($block: Int!, $first: Int!, $skip: Int!) {
  entries: exchangeEntries(
    block: { number: $block }
    first: $first
    skip: $skip
    orderBy: index
    orderDirection: asc
  ) {
    id
    index
    fromAddr
    sourceKey
    sourceAmount
    destAddr
    destKey
    destRecived
    feeForPool
    feeForFoundation
    timestamp
  }
}
"""

PERP_FEE_ENTRIES_QUERY = """
query PerpFeeEntries($block: Int!, $first: Int!, $skip: Int!) {
  entries: perpFeeEntries(
    block: { number: $block }
    first: $first
    skip: $skip
    orderBy: index
    orderDirection: asc
  ) {
    id
    index
    feeForPool
    feeForFoundation
    timestamp
  }
}
"""

REWARD_CLAIMS_QUERY = """
query RewardClaims($block: Int!, $first: Int!, $skip: Int!) {
  entries: rewardClaims(
    block: { number: $block }
    first: $first
    skip: $skip
    orderBy: index
    orderDirection: asc
  ) {
    id
    index
    recipient
    periodId
    stakingReward
    feeReward
  }
}
"""
