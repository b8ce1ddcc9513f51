import base64
import binascii
from datetime import datetime
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FileManagerModel(BaseModel):
    """Базовая схема протокола файлового менеджера (camelCase на проводе)"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore"
    )


class FileManagerItem(FileManagerModel):
    """Описание одного элемента файлового менеджера"""
    id: Optional[str] = None
    name: Optional[str] = None
    size: Optional[int] = 0
    is_file: bool = True
    has_child: bool = False
    date_created: Optional[Union[datetime, str]] = None
    date_modified: Optional[Union[datetime, str]] = None
    type: Optional[str] = None
    filter_path: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if v is None:
            return v
        return str(v)


class FileManagerRequest(FileManagerModel):
    """Единый запрос для действий read|delete|details|search|copy"""
    action: Optional[str] = None
    path: Optional[str] = "/"
    names: List[str] = Field(default_factory=list)
    data: List[FileManagerItem] = Field(default_factory=list)
    search_string: Optional[str] = None
    show_hidden_items: bool = False
    case_sensitive: bool = False
    target_path: Optional[str] = None
    rename_files: List[str] = Field(default_factory=list)

    @field_validator("names", "data", "rename_files", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v


class ErrorDetails(FileManagerModel):
    """Структурированная ошибка в ответе файлового менеджера"""
    code: Optional[str] = None
    message: str
    file_exists: Optional[List[str]] = None


class DetailsPayload(FileManagerModel):
    """Результат действия details"""
    name: str
    location: str = "\\"
    is_file: bool
    size: str = ""
    created: str = ""
    modified: str = ""
    multiple_files: bool = False


class FileManagerResponse(FileManagerModel):
    """Конверт ответа: cwd / files / error / details"""
    cwd: Optional[FileManagerItem] = None
    files: Optional[List[FileManagerItem]] = None
    error: Optional[ErrorDetails] = None
    details: Optional[DetailsPayload] = None


class FilesResponse(FileManagerResponse):
    """Ответ семейства действий со списком файлов (delete, search, copy)"""
    files: List[FileManagerItem] = Field(default_factory=list)
    details: None = None


class ReadResponse(FilesResponse):
    """Ответ на read: список файлов и максимальный id"""
    doc_count: int = 0


class DetailsResponse(FileManagerResponse):
    """Ответ на details"""
    files: None = None


class SaveDocumentRequest(BaseModel):
    """Схема для сохранения документа (содержимое в Base64)"""
    base64_content: str = Field(
        ...,
        validation_alias=AliasChoices("base64Content", "Base64Content", "base64_content")
    )
    file_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("fileName", "FileName", "file_name")
    )

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v):
        if not v.strip():
            raise ValueError("File name cannot be empty")
        return v.strip()

    @field_validator("base64_content")
    @classmethod
    def validate_base64(cls, v):
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("Content is not valid Base64")
        return v

    @property
    def content(self) -> bytes:
        return base64.b64decode(self.base64_content)


class SaveDocumentResponse(BaseModel):
    """Схема для ответа на сохранение"""
    message: str
    id: int
    created: bool


class DocumentExistenceRequest(BaseModel):
    """Схема для проверки существования документа по имени"""
    file_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("fileName", "FileName", "file_name")
    )


class DocumentExistenceResponse(BaseModel):
    exists: bool
