"""Common FastAPI dependencies."""

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from .database import get_session
from .geocoding import ReverseGeocoder, get_geocoder
from .storage import get_blob_store
from .store import ReportStore


async def get_report_store(session: AsyncSession = Depends(get_session)) -> ReportStore:
    return ReportStore(session)


def get_reverse_geocoder() -> ReverseGeocoder:
    return get_geocoder()


def get_photo_store():
    return get_blob_store()


__all__ = ["get_report_store", "get_reverse_geocoder", "get_photo_store"]
