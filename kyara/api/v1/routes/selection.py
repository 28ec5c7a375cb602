from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, Response, status

from kyara.api.v1.routes.session import selection_status
from kyara.core.deps import locale_dep, ready_synchronizer_dep, synchronizer_dep
from kyara.core.validation import normalize_public_url
from kyara.domain.entities import DetailedCharacterRef
from kyara.domain.schemas import (
    AnimeHintsIn,
    AnimeRosterOut,
    AnimeSelectionOut,
    AnimeSummaryOut,
    CharacterPoolOut,
    CharacterSelectionOut,
    DetailedCharacterIn,
    DetailedCharacterOut,
    SelectedAnimesOut,
    SelectionStatusOut,
)
from kyara.services.selection_queries import selected_count
from kyara.services.selection_synchronizer import SelectionSynchronizer

router = APIRouter(dependencies=[Depends(locale_dep)])


def _anime_selection(synchronizer: SelectionSynchronizer, anime_id: int) -> AnimeSelectionOut:
    entry = synchronizer.cached_anime(anime_id)
    return AnimeSelectionOut(
        anime_id=anime_id,
        selected=synchronizer.is_anime_selected(anime_id),
        status=synchronizer.anime_selection_status(anime_id).value,
        selected_count=selected_count(synchronizer.selected_ids(), entry) if entry is not None else 0,
        roster_size=len(entry.roster) if entry is not None else 0,
    )


@router.get("/selection", response_model=SelectionStatusOut)
async def get_selection_status(
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> SelectionStatusOut:
    return selection_status(synchronizer)


@router.delete("/selection", status_code=status.HTTP_204_NO_CONTENT)
async def clear_selection(
    synchronizer: SelectionSynchronizer = Depends(ready_synchronizer_dep),
) -> Response:
    await synchronizer.clear_all_selections()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/selection/characters/{character_id}", response_model=CharacterSelectionOut)
async def get_character_selection(
    character_id: int = Path(ge=1),
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> CharacterSelectionOut:
    return CharacterSelectionOut(character_id=character_id, selected=synchronizer.is_character_selected(character_id))


@router.put("/selection/characters/{character_id}", response_model=CharacterSelectionOut)
async def add_character(
    body: DetailedCharacterIn,
    character_id: int = Path(ge=1),
    synchronizer: SelectionSynchronizer = Depends(ready_synchronizer_dep),
) -> CharacterSelectionOut:
    await synchronizer.add_character(
        DetailedCharacterRef(
            id=character_id,
            name=body.name.strip(),
            image_url=normalize_public_url(body.image_url),
            anime_id=body.anime_id,
            anime_title=body.anime_title.strip(),
        )
    )
    return CharacterSelectionOut(character_id=character_id, selected=synchronizer.is_character_selected(character_id))


@router.delete("/selection/characters/{character_id}", response_model=CharacterSelectionOut)
async def remove_character(
    character_id: int = Path(ge=1),
    synchronizer: SelectionSynchronizer = Depends(ready_synchronizer_dep),
) -> CharacterSelectionOut:
    await synchronizer.remove_character(character_id)
    return CharacterSelectionOut(character_id=character_id, selected=synchronizer.is_character_selected(character_id))


@router.get("/selection/animes", response_model=SelectedAnimesOut)
async def list_selected_animes(
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> SelectedAnimesOut:
    return SelectedAnimesOut(animes=[AnimeSummaryOut.from_entity(e) for e in synchronizer.selected_animes()])


@router.get("/selection/animes/{anime_id}", response_model=AnimeSelectionOut)
async def get_anime_selection(
    anime_id: int = Path(ge=1),
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> AnimeSelectionOut:
    return _anime_selection(synchronizer, anime_id)


@router.post("/selection/animes/{anime_id}/toggle", response_model=AnimeSelectionOut)
async def toggle_anime(
    body: AnimeHintsIn,
    anime_id: int = Path(ge=1),
    synchronizer: SelectionSynchronizer = Depends(ready_synchronizer_dep),
) -> AnimeSelectionOut:
    await synchronizer.toggle_all_characters_of_anime(
        anime_id,
        body.title.strip(),
        normalize_public_url(body.image_url) or "",
    )
    return _anime_selection(synchronizer, anime_id)


@router.get("/selection/pool", response_model=CharacterPoolOut)
async def get_character_pool(
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> CharacterPoolOut:
    return CharacterPoolOut(characters=[DetailedCharacterOut.from_entity(c) for c in synchronizer.game_character_pool()])


@router.get("/animes/{anime_id}/characters", response_model=AnimeRosterOut)
async def get_anime_roster(
    anime_id: int = Path(ge=1),
    title: str = Query(default="", max_length=512),
    image_url: str = Query(default="", max_length=2048),
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> AnimeRosterOut:
    characters = await synchronizer.resolve_anime_roster(
        anime_id,
        title.strip(),
        normalize_public_url(image_url) or "",
    )
    entry = synchronizer.cached_anime(anime_id)
    return AnimeRosterOut(
        anime_id=anime_id,
        title=entry.title if entry is not None else title.strip(),
        characters=[DetailedCharacterOut.from_entity(c) for c in characters],
    )
