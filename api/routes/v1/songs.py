"""
api/routes/v1/songs.py -- The caller's private song library.

Routes:
  GET    /songs             -- list the caller's songs, newest first
  POST   /songs             -- add a song owned by the caller
  GET    /songs/{song_id}   -- one of the caller's songs
  DELETE /songs/{song_id}   -- remove one of the caller's songs

Every handler passes current_user.id to SongStore, which binds it in the same
WHERE clause as the song id. A song that belongs to another user produces the
same 404 as a song that does not exist.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, SongCreate, SongResponse
from auth.dependencies import get_current_user
from auth.models import Identity
from library.store import SongStore

# All song routes require authentication.
# Router-level dependency rejects unauthenticated requests before any handler
# runs; handlers also declare it to receive the identity (cached per request).
router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/songs", response_model=list[SongResponse])
def list_songs(request: Request, current_user: Identity = Depends(get_current_user)) -> list[SongResponse]:
    """Return the caller's songs ordered by creation time, newest first."""
    songs: SongStore = request.app.state.song_store
    return [SongResponse.from_song(s) for s in songs.list_songs(current_user.id)]


@router.post("/songs", response_model=SongResponse, status_code=201)
def create_song(
    request: Request,
    body: SongCreate,
    current_user: Identity = Depends(get_current_user),
) -> SongResponse:
    """Add a song. title and artist are required; duration (seconds) is optional."""
    songs: SongStore = request.app.state.song_store
    song = songs.create_song(current_user.id, title=body.title, artist=body.artist, duration=body.duration)
    return SongResponse.from_song(song)


@router.get("/songs/{song_id}", response_model=SongResponse)
def get_song(request: Request, song_id: int, current_user: Identity = Depends(get_current_user)) -> SongResponse:
    songs: SongStore = request.app.state.song_store
    return SongResponse.from_song(songs.get_song(current_user.id, song_id))


@router.delete("/songs/{song_id}", response_model=MessageResponse)
def delete_song(request: Request, song_id: int, current_user: Identity = Depends(get_current_user)) -> MessageResponse:
    """Delete one of the caller's songs; 404 if no such song is theirs."""
    songs: SongStore = request.app.state.song_store
    songs.delete_song(current_user.id, song_id)
    return MessageResponse(message="Song deleted successfully.")
