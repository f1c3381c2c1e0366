"""Tests for pst_merger.providers.outlook module."""

import itertools
from unittest.mock import MagicMock, PropertyMock, patch

import pytest

from pst_merger.engine import MergeEngine
from pst_merger.errors import ProviderUnavailableError, PstMergerError
from pst_merger.provider import IPM_SUBTREE_ENTRYID
from pst_merger.providers import outlook
from pst_merger.providers.outlook import (
    OL_FOLDER_DELETED_ITEMS,
    OutlookFolder,
    OutlookItem,
    OutlookItems,
    OutlookProvider,
    OutlookStore,
)


def com_store(path, store_id="S1"):
    store = MagicMock()
    store.FilePath = path
    store.StoreID = store_id
    return store


def com_items(*names):
    items = MagicMock()
    items.Count = len(names)
    items.Item.side_effect = lambda i: names[i - 1]
    return items


class FakeComItems:
    """Live 1-based ``Items`` collection."""

    def __init__(self, folder):
        self._folder = folder

    @property
    def Count(self):
        return len(self._folder.contents)

    def Item(self, index):
        return self._folder.contents[index - 1]


class FakeComItem:
    """Mail item following Outlook's Copy, Move and Delete behaviour."""

    def __init__(self, subject, parent):
        self.Subject = subject
        self.Parent = parent
        parent.contents.append(self)

    def Copy(self):
        return FakeComItem(self.Subject, self.Parent)

    def Move(self, folder):
        self.Parent.contents.remove(self)
        return FakeComItem(self.Subject, folder)

    def Delete(self):
        deleted_items = self.Parent.Store.GetDefaultFolder(OL_FOLDER_DELETED_ITEMS)
        if self.Parent is deleted_items:
            self.Parent.contents.remove(self)
        else:
            self.Move(deleted_items)


class FakeComFolders(list):
    """``Folders`` collection supporting ``Add``."""

    def __init__(self, owner):
        super().__init__()
        self._owner = owner

    def Add(self, name, item_type=None):
        folder = FakeComFolder(name, self._owner.Store)
        self.append(folder)
        return folder


class FakeComFolder:
    """MAPI folder holding items and subfolders."""

    _entry_ids = itertools.count(1)

    def __init__(self, name, store):
        self.Name = name
        self.Store = store
        self.DefaultItemType = 0
        self.EntryID = f"{next(self._entry_ids):08X}"
        self.contents = []
        self.Folders = FakeComFolders(self)

    @property
    def Items(self):
        return FakeComItems(self)


class FakeComStore:
    """PST store whose root holds Deleted Items plus the named folders."""

    def __init__(self, path, folder_names, deleted_items_first=True):
        self.FilePath = path
        self.root = FakeComFolder("Top of Personal Folders", self)
        self.deleted_items = FakeComFolder("Deleted Items", self)
        if deleted_items_first:
            self.root.Folders.append(self.deleted_items)
        for name in folder_names:
            self.root.Folders.Add(name)
        if not deleted_items_first:
            self.root.Folders.append(self.deleted_items)

    def GetDefaultFolder(self, kind):
        assert kind == OL_FOLDER_DELETED_ITEMS
        return self.deleted_items

    def folder(self, name):
        return next(f for f in self.root.Folders if f.Name == name)

    def contents(self):
        """All ``(folder name, subject)`` pairs below the root."""
        return sorted(
            (folder.Name, item.Subject)
            for folder in self.root.Folders
            for item in folder.contents
        )


@pytest.fixture
def namespace():
    """MAPI namespace mock."""
    return MagicMock()


@pytest.fixture
def outlook_provider(namespace):
    """OutlookProvider wired to a mocked Outlook.Application."""
    app = MagicMock()
    app.GetNamespace.return_value = namespace
    with patch.object(outlook, "Dispatch", return_value=app) as dispatch:
        provider = OutlookProvider()
    dispatch.assert_called_once_with("Outlook.Application")
    app.GetNamespace.assert_called_once_with("MAPI")
    return provider


class TestOutlookProviderInit:
    """Tests for creating the provider."""

    def test_unavailable_without_pywin32(self):
        with patch.object(outlook, "Dispatch", None):
            with pytest.raises(ProviderUnavailableError):
                OutlookProvider()


class TestOutlookItems:
    """Tests for the zero-based Items view."""

    def test_len(self):
        assert len(OutlookItems(com_items("a", "b"))) == 2

    def test_zero_based_index(self):
        view = OutlookItems(com_items("a", "b"))
        assert view[0].com == "a"
        assert view[1].com == "b"

    def test_out_of_range(self):
        view = OutlookItems(com_items("a"))
        with pytest.raises(IndexError):
            view[1]
        with pytest.raises(IndexError):
            view[-1]


class TestComHandle:
    """Tests for COM wrapper release."""

    def test_use_after_release(self, outlook_provider):
        item = OutlookItem(MagicMock())
        outlook_provider.release(item)
        with pytest.raises(PstMergerError):
            item.com

    def test_release_ignores_none(self, outlook_provider):
        outlook_provider.release(None)


class TestOutlookFolder:
    """Tests for folder wrappers."""

    def test_properties(self):
        com = MagicMock()
        com.Name = "Inbox"
        com.DefaultItemType = 0
        com.Store = com_store("C:\\a.pst")
        folder = OutlookFolder(com)

        assert folder.name == "Inbox"
        assert folder.default_item_type == 0
        assert folder.store.path == "C:\\a.pst"

    def test_children(self):
        com = MagicMock()
        com.Folders = [MagicMock(Name="A"), MagicMock(Name="B")]
        assert [child.com.Name for child in OutlookFolder(com).children()] == ["A", "B"]

    def test_items(self):
        com = MagicMock()
        com.Items = com_items("x")
        assert len(OutlookFolder(com).items()) == 1


class TestOutlookStores:
    """Tests for attaching and detaching PST files."""

    def test_attach_store(self, outlook_provider, namespace):
        namespace.Stores = [com_store("C:\\other.pst"), com_store("C:\\Mail\\A.pst", "S2")]

        store = outlook_provider.attach_store("c:\\mail\\a.pst")

        namespace.AddStore.assert_called_once_with("c:\\mail\\a.pst")
        assert store.store_id == "S2"

    def test_attach_store_not_listed(self, outlook_provider, namespace):
        namespace.Stores = [com_store("C:\\other.pst")]
        with pytest.raises(PstMergerError):
            outlook_provider.attach_store("C:\\a.pst")

    def test_attach_skips_stores_without_path(self, outlook_provider, namespace):
        broken = MagicMock()
        type(broken).FilePath = PropertyMock(side_effect=OSError("no path"))
        namespace.Stores = [broken, com_store("C:\\a.pst")]

        store = outlook_provider.attach_store("C:\\a.pst")
        assert store.path == "C:\\a.pst"

    def test_detach_store(self, outlook_provider, namespace):
        com = com_store("C:\\a.pst")
        outlook_provider.detach_store(OutlookStore(com))
        namespace.RemoveStore.assert_called_once_with(com.GetRootFolder.return_value)

    def test_structural_property(self, outlook_provider):
        com = com_store("C:\\a.pst")
        com.PropertyAccessor.GetProperty.return_value = "00AB"
        value = outlook_provider.get_structural_property(OutlookStore(com), IPM_SUBTREE_ENTRYID)
        assert value == "00AB"
        com.PropertyAccessor.GetProperty.assert_called_once_with(IPM_SUBTREE_ENTRYID)

    def test_resolve_folder_by_id(self, outlook_provider, namespace):
        folder = outlook_provider.resolve_folder_by_id("00AB", "S1")
        namespace.GetFolderFromID.assert_called_once_with("00AB", "S1")
        assert folder.com is namespace.GetFolderFromID.return_value

    def test_resolve_folder_by_id_none(self, outlook_provider, namespace):
        namespace.GetFolderFromID.return_value = None
        assert outlook_provider.resolve_folder_by_id("00AB", "S1") is None

    def test_top_level_folders(self, outlook_provider, namespace):
        namespace.Folders = [MagicMock(Name="Personal Folders")]
        folders = outlook_provider.enumerate_top_level_folders()
        assert [f.name for f in folders] == ["Personal Folders"]


class TestOutlookItemOperations:
    """Tests for folder creation and item moves."""

    def test_create_typed_folder(self, outlook_provider):
        parent = OutlookFolder(MagicMock())
        outlook_provider.create_child_folder(parent, "Calendar", 1)
        parent.com.Folders.Add.assert_called_once_with("Calendar", 1)

    def test_create_untyped_folder(self, outlook_provider):
        parent = OutlookFolder(MagicMock())
        outlook_provider.create_child_folder(parent, "Projects")
        parent.com.Folders.Add.assert_called_once_with("Projects")

    def test_duplicate_and_relocate(self, outlook_provider):
        item = OutlookItem(MagicMock())
        dest = OutlookFolder(MagicMock())

        copy = outlook_provider.duplicate_item(item)
        moved = outlook_provider.relocate_item(copy, dest)

        assert copy.com is item.com.Copy.return_value
        copy.com.Move.assert_called_once_with(dest.com)
        assert moved.com is copy.com.Move.return_value

    def test_remove_item_purges(self, outlook_provider):
        store = FakeComStore("C:\\a.pst", ["Inbox"])
        inbox = store.folder("Inbox")
        FakeComItem("m1", inbox)

        outlook_provider.remove_item(OutlookItem(inbox.contents[0]))

        assert inbox.contents == []
        assert store.deleted_items.contents == []

    def test_remove_item_from_deleted_items(self, outlook_provider):
        store = FakeComStore("C:\\a.pst", [])
        old = FakeComItem("old", store.deleted_items)

        outlook_provider.remove_item(OutlookItem(old))

        assert store.deleted_items.contents == []

    def test_close(self, outlook_provider):
        outlook_provider.close()
        assert outlook_provider._namespace is None


class TestOutlookMerge:
    """Merging through the engine with Outlook's delete behaviour."""

    @pytest.mark.parametrize("deleted_items_first", [True, False])
    def test_source_emptied_without_duplicates(self, outlook_provider, recorder,
                                               deleted_items_first):
        source = FakeComStore("C:\\source.pst", ["Inbox"], deleted_items_first)
        FakeComItem("m1", source.folder("Inbox"))
        FakeComItem("m2", source.folder("Inbox"))
        dest = FakeComStore("C:\\merged.pst", [])

        engine = MergeEngine(outlook_provider, recorder)
        engine.merge_into(OutlookFolder(source.root), OutlookFolder(dest.root))

        assert source.contents() == []
        assert dest.contents() == [("Inbox", "m1"), ("Inbox", "m2")]
        assert engine.stats.items_moved == 2
        assert recorder.issues == []

    def test_deleted_items_merged_once(self, outlook_provider, recorder):
        source = FakeComStore("C:\\source.pst", ["Inbox"])
        FakeComItem("old", source.deleted_items)
        FakeComItem("m1", source.folder("Inbox"))
        dest = FakeComStore("C:\\merged.pst", [])

        MergeEngine(outlook_provider, recorder).merge_into(
            OutlookFolder(source.root), OutlookFolder(dest.root)
        )

        assert source.contents() == []
        assert dest.contents() == [("Deleted Items", "old"), ("Inbox", "m1")]
