from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status

from movie_catalog.api.dependencies import (
    get_movie_service,
    limit_body_size,
    read_csv,
    read_expected_version,
    read_id,
    read_int,
    read_string,
)
from movie_catalog.core.filters import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MOVIE_SORT_SAFELIST, Filters
from movie_catalog.core.validator import Validator
from movie_catalog.schemas.movie import (
    MessageResponse,
    MovieCreateRequest,
    MovieEnvelope,
    MovieListEnvelope,
    MovieUpdateRequest,
)
from movie_catalog.services.movie_service import MovieService

router = APIRouter(tags=["Movies"])


@router.get("/movies", response_model=MovieListEnvelope)
async def list_movies(
    request: Request,
    service: MovieService = Depends(get_movie_service),
) -> dict:
    """List movies with optional title search, genre filter, sorting and paging.

    Query parameters: ``title``, ``genres`` (comma separated), ``page``,
    ``page_size`` and ``sort`` (one of id, title, year, runtime, optionally
    prefixed with ``-`` for descending order).
    """
    v = Validator()
    query = request.query_params

    title = read_string(query, "title", "")
    genres = read_csv(query, "genres", [])
    filters = Filters(
        page=read_int(query, "page", DEFAULT_PAGE, v),
        page_size=read_int(query, "page_size", DEFAULT_PAGE_SIZE, v),
        sort=read_string(query, "sort", "id"),
        sort_safelist=MOVIE_SORT_SAFELIST,
    )

    movies, metadata = await service.list(title=title, genres=genres, filters=filters, validator=v)
    return {
        "movies": [movie.to_public_dict() for movie in movies],
        "metadata": metadata.to_dict(),
    }


@router.post(
    "/movies",
    response_model=MovieEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_body_size)],
)
async def create_movie(
    payload: MovieCreateRequest,
    response: Response,
    service: MovieService = Depends(get_movie_service),
) -> dict:
    """Create a movie; responds 201 with a ``Location`` header."""

    movie = await service.create(
        title=payload.title,
        year=payload.year,
        runtime=payload.runtime,
        genres=payload.genres,
    )
    response.headers["Location"] = f"/v1/movies/{movie.id}"
    return {"movie": movie.to_public_dict()}


@router.get("/movies/{movie_id}", response_model=MovieEnvelope)
async def show_movie(
    movie_id: str,
    service: MovieService = Depends(get_movie_service),
) -> dict:
    movie = await service.get(read_id(movie_id))
    return {"movie": movie.to_public_dict()}


@router.patch(
    "/movies/{movie_id}",
    response_model=MovieEnvelope,
    dependencies=[Depends(limit_body_size)],
)
async def update_movie(
    movie_id: str,
    payload: MovieUpdateRequest,
    expected_version: int | None = Depends(read_expected_version),
    service: MovieService = Depends(get_movie_service),
) -> dict:
    """Partially update a movie.

    Only fields present in the body are changed. Send ``X-Expected-Version``
    with the version you last read to have stale edits rejected with 409.
    """
    movie = await service.update(
        read_id(movie_id),
        payload.supplied_fields(),
        expected_version=expected_version,
    )
    return {"movie": movie.to_public_dict()}


@router.delete("/movies/{movie_id}", response_model=MessageResponse)
async def delete_movie(
    movie_id: str,
    service: MovieService = Depends(get_movie_service),
) -> dict:
    await service.delete(read_id(movie_id))
    return {"message": "movie successfully deleted"}
