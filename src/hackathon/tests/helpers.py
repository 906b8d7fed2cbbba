from hackathon.models import Hackathon

WINNER_ADDRESSES = [
    "0x00000000000000000000000000000000000000c1",
    "0x00000000000000000000000000000000000000c2",
    "0x00000000000000000000000000000000000000c3",
]

_contract_ids = iter(range(1, 1_000_000))


def create_hackathon(
    title="Hackathon",
    status=Hackathon.Status.COMPLETED,
    prize_amount=100,
    is_deposited=True,
    contract_id=None,
    **kwargs,
):
    return Hackathon.objects.create(
        title=title,
        status=status,
        prize_amount=prize_amount,
        is_deposited=is_deposited,
        contract_id=contract_id if contract_id is not None else next(_contract_ids),
        **kwargs,
    )


def winner_list(amounts, addresses=WINNER_ADDRESSES):
    return [
        {"rank": rank, "wallet_address": address, "prize_amount": amount}
        for rank, (address, amount) in enumerate(zip(addresses, amounts), start=1)
    ]


def create_finalized_hackathon(amounts=(50, 30, 20), **kwargs):
    kwargs.setdefault("prize_amount", sum(amounts))
    hackathon = create_hackathon(**kwargs)
    hackathon.finalize_winners(winner_list(amounts))
    return hackathon
