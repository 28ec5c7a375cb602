from __future__ import annotations

from fastapi import APIRouter, Depends

from kyara.core.deps import identity_dep, synchronizer_dep
from kyara.domain.schemas import SelectionStatusOut, SignInIn
from kyara.infrastructure.identity.session_identity import SessionIdentityProvider
from kyara.services.selection_synchronizer import SelectionSynchronizer

router = APIRouter()


def selection_status(synchronizer: SelectionSynchronizer) -> SelectionStatusOut:
    return SelectionStatusOut(
        loading=synchronizer.is_loading(),
        phase=synchronizer.phase.value,
        user_id=synchronizer.user_id,
        selected_count=len(synchronizer.selected_ids()),
        cached_animes=len(synchronizer.cached_animes()),
    )


@router.post("/session/sign-in", response_model=SelectionStatusOut)
async def sign_in(
    body: SignInIn,
    identity: SessionIdentityProvider = Depends(identity_dep),
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> SelectionStatusOut:
    await identity.sign_in(body.user_id)
    return selection_status(synchronizer)


@router.post("/session/sign-out", response_model=SelectionStatusOut)
async def sign_out(
    identity: SessionIdentityProvider = Depends(identity_dep),
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> SelectionStatusOut:
    await identity.sign_out()
    return selection_status(synchronizer)
