import logging
from typing import Optional

from .document_store import DocumentStore
from .errors import UploadError
from .media_store import MediaStore, DOCUMENT_TYPES, IMAGE_TYPES
from .models import InterschoolSettings, HomePageContent, INTERSCHOOL_SETTINGS_ID, HOME_CONTENT_ID

logger = logging.getLogger(__name__)


class SettingsService:
    """Singleton settings: the interschool circular/remarks and the home page content."""
    
    def __init__(
        self,
        store: DocumentStore = None,
        media: Optional[MediaStore] = None,
        circular_max_bytes: int = 5 * 1024 * 1024,
        home_image_max_bytes: int = 2 * 1024 * 1024
    ):
        self.store = store or DocumentStore()
        self.media = media
        self.circular_max_bytes = circular_max_bytes
        self.home_image_max_bytes = home_image_max_bytes
    
    def _require_media(self) -> MediaStore:
        if self.media is None:
            raise UploadError('File uploads are not configured')
        return self.media
    
    def _replace_file(self, old_public_id: Optional[str]):
        if old_public_id and self.media is not None:
            try:
                self.media.delete(old_public_id)
            except UploadError as e:
                logger.warning(f"Previous upload {old_public_id} was not deleted: {e}")
    
    # ==================== Interschool settings ====================
    
    def get_interschool_settings(self) -> InterschoolSettings:
        settings = self.store.session.get(InterschoolSettings, INTERSCHOOL_SETTINGS_ID)
        return settings or InterschoolSettings(id=INTERSCHOOL_SETTINGS_ID, remarks='')
    
    def update_interschool_settings(
        self,
        remarks: str = None,
        circular_name: str = None,
        circular: bytes = None,
        circular_content_type: str = None,
        circular_filename: str = None,
        remove_circular: bool = False
    ) -> InterschoolSettings:
        """
        Update remarks and/or the circular. A new circular replaces (and deletes)
        the previous upload.
        """
        stored = None
        if circular:
            stored = self._require_media().store(
                circular,
                circular_content_type,
                filename=circular_filename,
                max_bytes=self.circular_max_bytes,
                allowed_types=DOCUMENT_TYPES,
                subfolder='circulars'
            )
        
        settings = self.store.session.get(InterschoolSettings, INTERSCHOOL_SETTINGS_ID)
        old_public_id = None
        with self.store.transaction('interschool settings update') as session:
            if settings is None:
                settings = InterschoolSettings(id=INTERSCHOOL_SETTINGS_ID, remarks='')
                session.add(settings)
            if remarks is not None:
                settings.remarks = remarks.strip()
            if circular_name is not None:
                settings.circular_name = circular_name.strip() or None
            if stored is not None or remove_circular:
                old_public_id = settings.circular_public_id
                settings.circular_url = stored.public_url if stored else None
                settings.circular_public_id = stored.public_id if stored else None
                if stored is None:
                    settings.circular_name = None
                elif not settings.circular_name:
                    settings.circular_name = circular_filename
        
        self._replace_file(old_public_id)
        return settings
    
    # ==================== Home page ====================
    
    def get_home_content(self) -> HomePageContent:
        content = self.store.session.get(HomePageContent, HOME_CONTENT_ID)
        return content or HomePageContent(id=HOME_CONTENT_ID, note='')
    
    def update_home_content(
        self,
        note: str = None,
        image: bytes = None,
        image_content_type: str = None,
        image_filename: str = None
    ) -> HomePageContent:
        stored = None
        if image:
            stored = self._require_media().store(
                image,
                image_content_type,
                filename=image_filename,
                max_bytes=self.home_image_max_bytes,
                allowed_types=IMAGE_TYPES,
                subfolder='home'
            )
        
        content = self.store.session.get(HomePageContent, HOME_CONTENT_ID)
        old_public_id = None
        with self.store.transaction('home content update') as session:
            if content is None:
                content = HomePageContent(id=HOME_CONTENT_ID, note='')
                session.add(content)
            if note is not None:
                content.note = note.strip()
            if stored is not None:
                old_public_id = content.image_public_id
                content.image_url = stored.public_url
                content.image_public_id = stored.public_id
        
        self._replace_file(old_public_id)
        return content
