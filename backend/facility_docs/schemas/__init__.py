from facility_docs.schemas.auth import AuthConfig, Token, TokenData, UserCreate, UserLogin, UserResponse
from facility_docs.schemas.category import CategoryInfo
from facility_docs.schemas.file import FileRename, FileResponse, UploadResponse
from facility_docs.schemas.folder import FolderCreate, FolderProperties, FolderRename, FolderResponse, FolderTreeNode, MoveRequest
from facility_docs.schemas.listing import FolderContents, FolderWindow, ListingOptions, SearchResults, SubtreeStats, WindowOptions
from facility_docs.schemas.preference import PreferenceResponse, PreferenceUpdate

__all__ = [
    "AuthConfig",
    "Token",
    "TokenData",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "CategoryInfo",
    "FileRename",
    "FileResponse",
    "UploadResponse",
    "FolderCreate",
    "FolderProperties",
    "FolderRename",
    "FolderResponse",
    "FolderTreeNode",
    "MoveRequest",
    "FolderContents",
    "FolderWindow",
    "ListingOptions",
    "SearchResults",
    "SubtreeStats",
    "WindowOptions",
    "PreferenceResponse",
    "PreferenceUpdate",
]
