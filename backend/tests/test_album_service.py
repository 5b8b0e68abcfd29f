"""
Tests for album membership, covers and the available-photos complement.
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from photoshelf.core.errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from photoshelf.models.album import AlbumPhoto
from photoshelf.models.photo import Photo
from photoshelf.services import album_service, photo_service
from photoshelf.services.album_service import _insert_ignoring_duplicates


async def _membership_count(db, album_id) -> int:
    result = await db.execute(select(func.count()).select_from(AlbumPhoto).where(AlbumPhoto.album_id == album_id))
    return result.scalar_one()


class TestCreateAndUpdate:
    async def test_create_trims_name(self, db, alice):
        album = await album_service.create_album(db, alice, alice.user_id, "  Trip  ", description="")

        assert album.name == "Trip"
        assert album.description is None
        assert album.user_id == alice.user_id

    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    async def test_invalid_name_is_rejected(self, db, alice, name):
        with pytest.raises(ValidationError):
            await album_service.create_album(db, alice, alice.user_id, name)

    async def test_creating_for_another_owner_is_unauthorized(self, db, alice, bob):
        with pytest.raises(Unauthorized):
            await album_service.create_album(db, alice, bob.user_id, "Trip")

    async def test_rename_keeps_membership(self, db, alice, make_photo):
        photo = await make_photo(alice)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [photo.id])

        summary = await album_service.update_album(db, alice, alice.user_id, album.id, name="Holiday")

        assert summary.album.name == "Holiday"
        assert summary.photo_count == 1

    async def test_cover_must_be_a_member(self, db, alice, make_photo):
        photo = await make_photo(alice)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")

        with pytest.raises(ValidationError):
            await album_service.update_album(db, alice, alice.user_id, album.id, cover_photo_id=photo.id)

    async def test_cover_from_another_owner_is_forbidden(self, db, alice, bob, make_photo):
        foreign = await make_photo(bob)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")

        with pytest.raises(Forbidden):
            await album_service.update_album(db, alice, alice.user_id, album.id, cover_photo_id=foreign.id)

    async def test_explicit_cover_then_clear(self, db, alice, make_photo):
        older = await make_photo(alice, "older")
        newer = await make_photo(alice, "newer")
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [older.id])
        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [newer.id])

        summary = await album_service.update_album(db, alice, alice.user_id, album.id, cover_photo_id=older.id)
        assert summary.cover.id == older.id

        summary = await album_service.update_album(db, alice, alice.user_id, album.id, clear_cover=True)
        assert summary.album.cover_photo_id is None
        assert summary.cover.id == newer.id


class TestMembership:
    async def test_trip_scenario(self, db, alice, make_photo):
        """Add p1, add p1 again with p2, remove p1, then delete p2."""
        p1 = await make_photo(alice, "p1")
        p2 = await make_photo(alice, "p2")
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")

        assert await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [p1.id]) == [p1.id]
        assert await album_service.add_photos_to_album(
            db, alice, alice.user_id, album.id, [p1.id, p2.id]
        ) == [p2.id]
        assert await _membership_count(db, album.id) == 2

        await album_service.remove_photo_from_album(db, alice, alice.user_id, album.id, p1.id)
        photos = await album_service.list_album_photos(db, alice, album.id, alice.user_id)
        assert [photo.id for photo in photos] == [p2.id]
        assert await db.get(Photo, p1.id) is not None

        await photo_service.delete_photo(db, alice, alice.user_id, p2.id)
        summary = await album_service.get_album(db, alice, alice.user_id, album.id)
        assert summary.photo_count == 0
        assert summary.cover is None

    async def test_adding_is_an_idempotent_union(self, db, alice, make_photo):
        photos = [await make_photo(alice) for _ in range(3)]
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        ids = [photo.id for photo in photos]

        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, ids[:2])
        added = await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, ids + ids)

        assert added == [ids[2]]
        assert await _membership_count(db, album.id) == 3

    async def test_members_are_listed_newest_added_first(self, db, alice, make_photo):
        first = await make_photo(alice)
        second = await make_photo(alice)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")

        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [second.id])
        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [first.id])

        photos = await album_service.list_album_photos(db, alice, album.id, alice.user_id)
        assert [photo.id for photo in photos] == [first.id, second.id]

    async def test_foreign_photo_rejects_the_whole_batch(self, db, alice, bob, make_photo):
        mine = await make_photo(alice)
        theirs = await make_photo(bob)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")

        with pytest.raises(Forbidden) as exc_info:
            await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [mine.id, theirs.id])

        assert exc_info.value.details["photo_ids"] == [str(theirs.id)]
        assert await _membership_count(db, album.id) == 0

    async def test_unknown_photo_id_is_forbidden(self, db, alice):
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")

        with pytest.raises(Forbidden):
            await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [uuid4()])

    async def test_empty_batch_adds_nothing(self, db, alice):
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        assert await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, []) == []

    async def test_other_users_album_is_not_found(self, db, alice, bob, make_photo):
        photo = await make_photo(alice)
        album = await album_service.create_album(db, bob, bob.user_id, "Theirs")

        with pytest.raises(NotFound):
            await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [photo.id])
        with pytest.raises(NotFound):
            await album_service.get_album(db, alice, alice.user_id, album.id)

    async def test_removing_a_non_member_is_a_noop(self, db, alice, make_photo):
        photo = await make_photo(alice)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")

        await album_service.remove_photo_from_album(db, alice, alice.user_id, album.id, photo.id)
        assert await _membership_count(db, album.id) == 0

    async def test_duplicate_insert_is_ignored_by_the_database(self, db, alice, make_photo):
        """A pair inserted concurrently is absorbed by ON CONFLICT DO NOTHING."""
        photo = await make_photo(alice)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [photo.id])

        await db.execute(
            _insert_ignoring_duplicates(db),
            [{"album_id": album.id, "photo_id": photo.id, "position": 99}],
        )
        await db.commit()

        assert await _membership_count(db, album.id) == 1

    async def test_only_rows_actually_inserted_are_reported(self, db, alice, make_photo, monkeypatch):
        """A pair that landed between the membership read and the insert is not reported as added."""
        first = await make_photo(alice, "first")
        second = await make_photo(alice, "second")
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [first.id])

        async def stale_membership_read(db, album_id, photo_ids):
            return set()

        monkeypatch.setattr(album_service, "_existing_member_ids", stale_membership_read)

        added = await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [first.id, second.id])

        assert added == [second.id]
        assert await _membership_count(db, album.id) == 2

    async def test_photo_deleted_while_adding_is_a_conflict(self, db, alice, monkeypatch):
        """A photo gone after the ownership check fails the batch on its foreign key."""
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        album_id = album.id

        async def stale_ownership_read(db, owner_id, photo_ids):
            return set(photo_ids)

        monkeypatch.setattr(album_service, "_owned_photo_ids", stale_ownership_read)

        with pytest.raises(Conflict):
            await album_service.add_photos_to_album(db, alice, alice.user_id, album_id, [uuid4()])

        assert await _membership_count(db, album_id) == 0


class TestDeleteAlbum:
    async def test_delete_keeps_photos(self, db, alice, make_photo):
        photo = await make_photo(alice)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [photo.id])

        await album_service.delete_album(db, alice, alice.user_id, album.id)

        assert await _membership_count(db, album.id) == 0
        assert await db.get(Photo, photo.id) is not None
        with pytest.raises(NotFound):
            await album_service.get_album(db, alice, alice.user_id, album.id)


class TestListing:
    async def test_list_albums_with_counts_and_covers(self, db, alice, bob, make_photo):
        photo = await make_photo(alice)
        empty = await album_service.create_album(db, alice, alice.user_id, "Empty")
        full = await album_service.create_album(db, alice, alice.user_id, "Full")
        await album_service.add_photos_to_album(db, alice, alice.user_id, full.id, [photo.id])
        await album_service.create_album(db, bob, bob.user_id, "Bob's")

        summaries = await album_service.list_albums(db, alice, alice.user_id)

        assert [summary.album.id for summary in summaries] == [full.id, empty.id]
        assert [summary.photo_count for summary in summaries] == [1, 0]
        assert summaries[0].cover.id == photo.id
        assert summaries[1].cover is None

    async def test_available_photos_are_the_complement(self, db, alice, bob, make_photo):
        """Members plus available photos partition the owner's library."""
        photos = [await make_photo(alice) for _ in range(3)]
        await make_photo(bob)
        album = await album_service.create_album(db, alice, alice.user_id, "Trip")
        await album_service.add_photos_to_album(db, alice, alice.user_id, album.id, [photos[1].id])

        available = await album_service.list_available_photos_for_album(db, alice, alice.user_id, album.id)
        members = await album_service.list_album_photos(db, alice, album.id, alice.user_id)

        assert [photo.id for photo in available] == [photos[2].id, photos[0].id]
        assert {photo.id for photo in available} | {photo.id for photo in members} == {p.id for p in photos}
        assert not {photo.id for photo in available} & {photo.id for photo in members}

    async def test_available_photos_for_foreign_album_is_not_found(self, db, alice, bob):
        album = await album_service.create_album(db, bob, bob.user_id, "Theirs")

        with pytest.raises(NotFound):
            await album_service.list_available_photos_for_album(db, alice, alice.user_id, album.id)
