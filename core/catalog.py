from models.service import Service
from models import db
from core.errors import NotFound


def find_service(ref):
    """Look a service up by id first, then by name among active services."""
    service = None
    if isinstance(ref, int) or (isinstance(ref, str) and ref.strip().isdigit()):
        service = db.session.get(Service, int(ref))
    if service is None and isinstance(ref, str):
        service = Service.query.filter_by(name=ref.strip(), is_active=True).first()
    return service


def resolve_service(ref):
    service = find_service(ref)
    if not service or not service.is_active:
        raise NotFound(f"Service {ref} not found or inactive")
    return service
