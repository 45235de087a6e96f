"""Meter photo service - renter uploads of the electricity meter."""
import logging
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.orm import Session

from livenzo.exceptions import BackendError, ValidationError
from livenzo.models import AuditAction, MeterPhoto, Relationship
from livenzo.services import storage_service
from livenzo.services.audit_service import log_action
from livenzo.utils.formatters import current_billing_month

logger = logging.getLogger(__name__)


def upload_file(file, folder: str, owner_key) -> tuple:
    """
    Upload a renter file to object storage.

    Returns:
        (url, file_size)

    Raises:
        ValidationError: Missing, oversized or disallowed file
        BackendError: Storage unreachable or upload rejected
    """
    try:
        storage = storage_service.get_storage_service()
        size = storage.file_size(file) if file else 0
        object_name = storage_service.build_object_name(folder, owner_key, file.filename if file else '')
        url = storage.upload_file(file, object_name)
        return url, size
    except ValueError as e:
        raise ValidationError(str(e), {'field': 'file'})
    except (ClientError, BotoCoreError) as e:
        logger.exception(f"[STORAGE] Upload to '{folder}' failed: {e}")
        raise BackendError('Upload failed. Please try again.') from e


def upload_meter_photo(session: Session, relationship: Relationship, file,
                       billing_month: Optional[str] = None) -> MeterPhoto:
    """
    Store a meter photo for the month.

    Note: Caller is responsible for committing the session.
    """
    billing_month = billing_month or current_billing_month()
    url, size = upload_file(file, 'meter-photos', f"{relationship.id}/{billing_month}")

    photo = MeterPhoto(
        relationship_id=relationship.id,
        renter_id=relationship.renter_id,
        owner_id=relationship.owner_id,
        photo_url=url,
        photo_name=file.filename,
        file_size=size,
        billing_month=billing_month,
    )
    session.add(photo)
    session.flush()

    log_action(
        session,
        AuditAction.METER_PHOTO_UPLOADED,
        resource_type='meter_photo',
        resource_id=photo.id,
        details={'billing_month': billing_month, 'file_size': size},
        actor_id=relationship.renter_id
    )
    logger.info(f"[STORAGE] Meter photo {photo.id} stored for relationship {relationship.id} {billing_month}")
    return photo


def list_meter_photos(session: Session, relationship_id: int, billing_month: Optional[str] = None) -> List[MeterPhoto]:
    """Photos for the month, latest first."""
    billing_month = billing_month or current_billing_month()
    return session.query(MeterPhoto).filter(
        MeterPhoto.relationship_id == relationship_id,
        MeterPhoto.billing_month == billing_month
    ).order_by(MeterPhoto.created_at.desc(), MeterPhoto.id.desc()).all()
