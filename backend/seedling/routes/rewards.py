import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from seedling.database import get_session
from seedling.models import RewardRedemption
from seedling.schemas import RedemptionCreate, RedemptionRead, RedemptionResult
from seedling.crud import get_reward, create_redemption
from seedling.progress import calculate_seed_balance
from seedling.routes.deps import get_child_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.post("/{reward_id}/redeem", response_model=RedemptionResult)
async def redeem_reward(
    reward_id: int,
    data: RedemptionCreate,
    db: AsyncSession = Depends(get_session),
):
    reward = await get_reward(db, reward_id)
    if not reward:
        raise HTTPException(status_code=404, detail="Reward not found")
    child, _ = await get_child_context(db, data.child_id)
    if child.family_id != reward.family_id:
        raise HTTPException(status_code=404, detail="Reward not found")

    balance = await calculate_seed_balance(db, child.id)
    if balance < reward.cost:
        raise HTTPException(status_code=400, detail="Not enough seeds yet")

    redemption = await create_redemption(
        db,
        RewardRedemption(
            reward_id=reward.id,
            child_id=child.id,
            seeds_spent=reward.cost,
            note=data.note,
        ),
    )
    logger.info("Child %s redeemed reward %s for %s seeds", child.id, reward.id, reward.cost)
    return RedemptionResult(
        redemption=RedemptionRead.model_validate(redemption),
        balance=balance - reward.cost,
    )
