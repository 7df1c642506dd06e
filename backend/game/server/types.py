from pydantic import BaseModel, ConfigDict, Field

from game.logic.settings import MAX_NAME_LENGTH


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    player_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)


class JoinRoomRequest(CreateRoomRequest):
    pass


class StartGameRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    player_id: str = Field(min_length=1, max_length=100)


class GuessRequest(BaseModel):
    """Guess body. The guess is kept as a string so format errors come from the game rules."""

    model_config = ConfigDict(extra="forbid")

    player_id: str = Field(min_length=1, max_length=100)
    guess: str = Field(max_length=32)
