from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_directory, require_api_key
from api.models import TeamModel
from api.utils import team_to_model
from teams import TeamDirectory

router = APIRouter(prefix="/teams", tags=["teams"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[TeamModel], summary="List directory teams")
async def list_teams(directory: TeamDirectory = Depends(get_directory)) -> list[TeamModel]:
    return [team_to_model(team) for team in sorted(directory, key=lambda t: t.name)]


@router.get("/lookup", response_model=TeamModel, summary="Resolve a team id, name or alias")
async def lookup_team(
    q: str = Query(..., min_length=1),
    fuzzy: bool = Query(False, description="Also try normalized and fuzzy name matching"),
    directory: TeamDirectory = Depends(get_directory),
) -> TeamModel:
    team = directory.match_team_name(q) if fuzzy else directory.find_team(q)
    if team is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown team")
    return team_to_model(team)
