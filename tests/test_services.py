import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from app.db.repositories.document_repository import DocumentRepository
from app.domains.documents.schemas import FileManagerItem, FileManagerRequest
from app.domains.documents.services import DocumentLoadError, DocumentService, FileManagerService

from tests.conftest import DOCX_BYTES


def items(*ids):
    return [FileManagerItem(id=str(i), name=f"doc{i}.docx") for i in ids]


@pytest.fixture
def file_manager(db_session):
    return FileManagerService(db_session, root_name="Documents")


@pytest.fixture
def documents(db_session):
    return DocumentService(db_session, archive_name="Documents.zip")


class TestDispatcher:

    @pytest.mark.asyncio
    async def test_unknown_action_is_rejected(self, file_manager):
        with pytest.raises(ValueError, match="Unknown action"):
            await file_manager.handle(FileManagerRequest(action="rename"))

    @pytest.mark.asyncio
    async def test_missing_action_is_rejected(self, file_manager):
        with pytest.raises(ValueError, match="Action is required"):
            await file_manager.handle(FileManagerRequest())

    @pytest.mark.asyncio
    async def test_action_name_is_case_insensitive(self, file_manager, add_document):
        await add_document(1, "a.docx")

        result = await file_manager.handle(FileManagerRequest(action="READ"))

        assert [f.id for f in result.files] == ["1"]


class TestRead:

    @pytest.mark.asyncio
    async def test_read_lists_every_document_and_max_id(self, file_manager, add_document):
        await add_document(2, "Alpha.docx", b"12")
        await add_document(9, "Beta.docx", b"123")

        result = await file_manager.read()

        assert [(f.id, f.name, f.size, f.type) for f in result.files] == [
            ("2", "Alpha.docx", 2, ".docx"),
            ("9", "Beta.docx", 3, ".docx"),
        ]
        assert result.doc_count == 9
        assert result.cwd.name == "Documents"
        assert result.error is None
        assert result.details is None

    @pytest.mark.asyncio
    async def test_read_of_empty_store(self, file_manager):
        result = await file_manager.read()

        assert result.files == []
        assert result.doc_count == 0

    @pytest.mark.asyncio
    async def test_read_envelope_shape(self, file_manager, add_document):
        await add_document(1, "a.docx")

        dumped = (await file_manager.read()).model_dump(mode="json", by_alias=True)

        assert set(dumped) == {"cwd", "files", "error", "details", "docCount"}
        assert dumped["files"][0]["isFile"] is True


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_removes_matching_ids(self, file_manager, add_document):
        await add_document(1, "a.docx")
        await add_document(2, "b.docx")

        result = await file_manager.delete(items(1))

        assert result.error is None
        assert [f.id for f in (await file_manager.read()).files] == ["2"]

    @pytest.mark.asyncio
    async def test_delete_echoes_requested_metadata(self, file_manager, add_document):
        await add_document(1, "real-name.docx")
        requested = [FileManagerItem(id="1", name="claimed-name.docx", size=123)]

        result = await file_manager.delete(requested)

        assert [(f.name, f.size) for f in result.files] == [("claimed-name.docx", 123)]

    @pytest.mark.asyncio
    async def test_delete_of_unknown_ids_changes_nothing(self, file_manager, add_document):
        await add_document(1, "a.docx")

        result = await file_manager.delete(items(404, 405))

        assert result.error.message == "No matching files found."
        assert result.files == []
        assert [f.id for f in (await file_manager.read()).files] == ["1"]

    @pytest.mark.asyncio
    async def test_delete_without_items(self, file_manager):
        result = await file_manager.delete([])

        assert result.error.message == "No files to delete."


class TestDetails:

    @pytest.mark.asyncio
    async def test_single_item_details(self, file_manager, add_document):
        await add_document(1, "Big.docx", b"x" * 2048)

        result = await file_manager.details("/", [FileManagerItem(id="1", filter_path="\\")])

        assert result.error is None
        assert result.files is None
        assert result.details.name == "Big.docx"
        assert result.details.size == "2.0 KB"
        assert result.details.is_file is True
        assert result.details.multiple_files is False
        assert result.details.created.endswith(("AM", "PM"))

    @pytest.mark.asyncio
    async def test_multiple_items_are_not_aggregated(self, file_manager, add_document):
        await add_document(1, "a.docx", b"x" * 2048)
        await add_document(2, "b.docx", b"x" * 2048)

        result = await file_manager.details("/", items(1, 2))

        assert result.details.name == "Multiple Files"
        assert result.details.size == ""
        assert result.details.created == ""
        assert result.details.modified == ""
        assert result.details.multiple_files is True

    @pytest.mark.asyncio
    async def test_missing_item(self, file_manager):
        result = await file_manager.details("/", items(77))

        assert result.details is None
        assert result.error.message == "Item not found."
        assert result.error.code == "404"


class TestSearch:

    @pytest.mark.asyncio
    async def test_case_insensitive_search(self, file_manager, add_document):
        await add_document(1, "Report_Final.docx")
        await add_document(2, "Invoice.docx")

        result = await file_manager.search("report", case_sensitive=False)

        assert [f.name for f in result.files] == ["Report_Final.docx"]

    @pytest.mark.asyncio
    async def test_case_sensitive_search(self, file_manager, add_document):
        await add_document(1, "Report_Final.docx")

        result = await file_manager.search("report", case_sensitive=True)

        assert result.files == []

    @pytest.mark.asyncio
    async def test_wildcards_are_stripped_not_interpreted(self, file_manager, add_document):
        await add_document(1, "a.docx")
        await add_document(2, "b.docx.bak")
        await add_document(3, "c.txt")

        result = await file_manager.search("*.docx", case_sensitive=False)

        assert [f.name for f in result.files] == ["a.docx", "b.docx.bak"]

    @pytest.mark.asyncio
    async def test_blank_search_string_is_rejected(self, file_manager, add_document):
        await add_document(1, "a.docx")

        result = await file_manager.search("   ")

        assert result.error.message == "Search string is required."
        assert result.files == []


class TestCopy:

    @pytest.mark.asyncio
    async def test_conflict_without_confirmation_creates_nothing(self, file_manager, add_document, repository):
        await add_document(1, "X.docx")
        await add_document(2, "Y.docx")

        result = await file_manager.copy_engine.copy(items(2), names=["X.docx"])

        assert result.files == []
        assert result.error.file_exists == ["X.docx"]
        assert result.error.message == "File Already Exists"
        assert len(await repository.get_all()) == 2

    @pytest.mark.asyncio
    async def test_confirmed_rename_creates_numbered_copy(self, file_manager, add_document, repository):
        await add_document(1, "X.docx", b"x-bytes")
        await add_document(2, "Y.docx", b"y-bytes")

        result = await file_manager.copy_engine.copy(items(2), names=["X.docx"], rename_files=["X.docx"])

        assert result.error is None
        assert [(f.id, f.name) for f in result.files] == [("3", "X (1).docx")]
        copy = await repository.get_by_id(3)
        assert copy.content == b"y-bytes"
        assert len(await repository.get_all()) == 3

    @pytest.mark.asyncio
    async def test_many_items_get_consecutive_ids(self, file_manager, add_document, repository):
        await add_document(1, "a.docx")
        await add_document(2, "b.docx")
        await add_document(7, "c.docx")

        result = await file_manager.copy_engine.copy(
            items(1, 2, 7),
            names=["a copy.docx", "b copy.docx", "c copy.docx"]
        )

        assert [f.id for f in result.files] == ["8", "9", "10"]
        assert sorted(doc.id for doc in await repository.get_all()) == [1, 2, 7, 8, 9, 10]

    @pytest.mark.asyncio
    async def test_copy_has_fresh_timestamps(self, file_manager, add_document, repository):
        source = await add_document(1, "old.docx")

        result = await file_manager.copy_engine.copy(items(1), names=["new.docx"])

        copy = await repository.get_by_id(int(result.files[0].id))
        assert copy.created_at >= source.created_at
        assert copy.modified_at == copy.created_at

    @pytest.mark.asyncio
    async def test_partial_success_reports_conflicts(self, file_manager, add_document):
        await add_document(1, "Taken.docx")
        await add_document(2, "Free.docx")
        await add_document(3, "Other.docx")

        result = await file_manager.copy_engine.copy(items(2, 3), names=["Free copy.docx", "Taken.docx"])

        assert [f.name for f in result.files] == ["Free copy.docx"]
        assert result.error.file_exists == ["Taken.docx"]

    @pytest.mark.asyncio
    async def test_copy_under_own_name_does_not_collide_with_itself(self, file_manager, add_document, repository):
        await add_document(1, "Solo.docx")

        result = await file_manager.copy_engine.copy(items(1))

        assert result.error is None
        assert [f.name for f in result.files] == ["Solo.docx"]
        assert [doc.id for doc in await repository.get_all()] == [1, 2]

    @pytest.mark.asyncio
    async def test_unknown_sources_are_skipped(self, file_manager, add_document):
        await add_document(1, "a.docx")

        result = await file_manager.copy_engine.copy(
            [FileManagerItem(id="abc"), FileManagerItem(id="55"), FileManagerItem(id="1")],
            names=["", "", "a copy.docx"]
        )

        assert [f.name for f in result.files] == ["a copy.docx"]
        assert result.error is None

    @pytest.mark.asyncio
    async def test_copy_without_items(self, file_manager):
        result = await file_manager.copy_engine.copy([])

        assert result.error.message == "No files to copy."

    @pytest.mark.asyncio
    async def test_stale_maximum_keeps_copies_and_names_failures(self, file_manager, add_document, repository):
        await add_document(1, "a.docx", b"a")
        await add_document(2, "b.docx", b"b")
        await add_document(4, "c.docx", b"c")

        # Максимум, прочитанный до вставки записи 4 другой сессией
        async def stale_max_id():
            return 2

        file_manager.copy_engine.repository.max_id = stale_max_id

        result = await file_manager.copy_engine.copy(
            items(1, 2, 4),
            names=["a2.docx", "b2.docx", "c2.docx"]
        )

        assert [(f.id, f.name) for f in result.files] == [("3", "a2.docx"), ("5", "c2.docx")]
        assert result.error.code == "409"
        assert result.error.file_exists == ["b2.docx"]
        assert (await repository.get_by_id(4)).name == "c.docx"
        assert sorted(doc.id for doc in await repository.get_all()) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_failed_copies_are_listed_with_conflicts(self, file_manager, add_document):
        await add_document(1, "Taken.docx")
        await add_document(2, "b.docx")
        await add_document(3, "c.docx")

        async def stale_max_id():
            return 2

        file_manager.copy_engine.repository.max_id = stale_max_id

        result = await file_manager.copy_engine.copy(items(2, 3), names=["Taken.docx", "c2.docx"])

        assert result.files == []
        assert result.error.code == "409"
        assert result.error.file_exists == ["Taken.docx", "c2.docx"]


class TestSaveAndExistence:

    @pytest.mark.asyncio
    async def test_save_under_new_name_inserts_with_client_id(self, documents, repository):
        document, created = await documents.save_document(5, DOCX_BYTES, "Fresh.docx")

        assert created is True
        assert document.id == 5
        assert [doc.id for doc in await repository.get_all()] == [5]

    @pytest.mark.asyncio
    async def test_save_under_existing_name_updates_that_record(self, documents, add_document, repository):
        original = await add_document(3, "Existing.docx", b"PK\x03\x04old")

        document, created = await documents.save_document(99, b"PK\x03\x04new", "Existing.docx")

        assert created is False
        assert document.id == 3
        assert document.content == b"PK\x03\x04new"
        assert document.modified_at >= original.modified_at
        assert await repository.get_by_id(99) is None
        assert len(await repository.get_all()) == 1

    @pytest.mark.asyncio
    async def test_save_new_name_with_taken_id_fails(self, documents, add_document):
        await add_document(3, "Existing.docx")

        with pytest.raises(ValueError):
            await documents.save_document(3, DOCX_BYTES, "Another.docx")

    @pytest.mark.asyncio
    async def test_existence_flips_after_save(self, documents):
        assert await documents.document_exists("X.docx") is False

        await documents.save_document(1, DOCX_BYTES, "X.docx")

        assert await documents.document_exists("X.docx") is True
        assert await documents.document_exists("x.docx") is False


class TestLoadForEditing:

    @pytest.mark.asyncio
    async def test_valid_document(self, documents, add_document):
        await add_document(1, "Good.docx", DOCX_BYTES)

        document = await documents.load_for_editing(1)

        assert document.content == DOCX_BYTES

    @pytest.mark.asyncio
    async def test_missing_document(self, documents):
        assert await documents.load_for_editing(12) is None

    @pytest.mark.asyncio
    async def test_corrupted_docx(self, documents, add_document):
        await add_document(1, "Broken.docx", b"not a zip package")

        with pytest.raises(DocumentLoadError):
            await documents.load_for_editing(1)

    @pytest.mark.asyncio
    async def test_empty_content(self, documents, add_document):
        await add_document(1, "Empty.txt", b"")

        with pytest.raises(DocumentLoadError):
            await documents.load_for_editing(1)

    @pytest.mark.asyncio
    async def test_non_package_formats_are_not_signature_checked(self, documents, add_document):
        await add_document(1, "notes.txt", b"plain text")

        assert (await documents.load_for_editing(1)).content == b"plain text"


class TestConcurrentSaves:

    @pytest_asyncio.fixture
    async def session_factory(self, db_path, seed):
        seed(1, "Shared.docx", b"PK\x03\x04initial")
        engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
        yield sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        await engine.dispose()

    @pytest.mark.asyncio
    async def test_saves_under_one_name_update_one_record(self, session_factory):
        async def save(document_id, content):
            async with session_factory() as session:
                return await DocumentService(session).save_document(document_id, content, "Shared.docx")

        first, second = await asyncio.gather(
            save(7, b"PK\x03\x04first"),
            save(8, b"PK\x03\x04second"),
        )

        assert [(doc.id, created) for doc, created in (first, second)] == [(1, False), (1, False)]

        async with session_factory() as session:
            repository = DocumentRepository(session)
            stored = await repository.get_all()
            winner = await repository.get_by_id(1)

        assert [doc.id for doc in stored] == [1]
        assert winner.content in (b"PK\x03\x04first", b"PK\x03\x04second")
