from facility_docs.models.document_preference import DocumentPreference
from facility_docs.models.facility import Facility, user_facilities
from facility_docs.models.file import DocumentFile
from facility_docs.models.folder import DocumentFolder
from facility_docs.models.user import User

__all__ = ["User", "Facility", "DocumentFolder", "DocumentFile", "DocumentPreference", "user_facilities"]
