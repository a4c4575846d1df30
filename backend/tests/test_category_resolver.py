"""Category path resolution against the four level tables."""
import pytest
from sqlalchemy import select

from catalog_ingest.db.models.category import (
    CategoryLevel1,
    CategoryLevel2,
    CategoryLevel3,
)
from catalog_ingest.db.models.product import Product
from catalog_ingest.services.category_resolver import (
    CategoryPathError,
    recount_category_totals,
    resolve_category_path,
    resolve_level,
)


class TestResolveCategoryPath:
    def test_creates_linked_chain_on_empty_tables(self, db_session):
        chain = resolve_category_path(db_session, "Electronics>>Audio>>Headphones")
        db_session.commit()

        level1, level2, level3 = chain
        assert [node.level for node in chain] == [1, 2, 3]
        assert level2.parent_id == level1.id
        assert level3.parent_id == level2.id
        assert [node.position for node in chain] == [0, 0, 0]
        assert [node.slug for node in chain] == ["electronics", "audio", "headphones"]

    def test_existing_nodes_are_reused(self, db_session):
        first = resolve_category_path(db_session, "Electronics>>Audio")
        second = resolve_category_path(db_session, "electronics>>AUDIO")
        db_session.commit()

        assert [node.id for node in first] == [node.id for node in second]
        assert len(db_session.scalars(select(CategoryLevel2)).all()) == 1

    def test_positions_increase_within_a_level(self, db_session):
        resolve_category_path(db_session, "Electronics")
        resolve_category_path(db_session, "Garden")
        db_session.commit()

        positions = db_session.scalars(
            select(CategoryLevel1.position).order_by(CategoryLevel1.id)
        ).all()
        assert positions == [0, 1]

    def test_same_name_under_different_parents_gets_suffixed_slug(self, db_session):
        audio_a = resolve_category_path(db_session, "Electronics>>Accessories")[1]
        audio_b = resolve_category_path(db_session, "Garden>>Accessories")[1]
        db_session.commit()

        assert audio_a.id != audio_b.id
        assert audio_a.slug == "accessories"
        assert audio_b.slug == "accessories-2"
        assert audio_b.parent_id != audio_a.parent_id

    def test_sequence_input(self, db_session):
        chain = resolve_category_path(db_session, ["Home", "Kitchen"])
        assert [node.name for node in chain] == ["Home", "Kitchen"]

    def test_unsluggable_name_rejected(self, db_session):
        with pytest.raises(CategoryPathError):
            resolve_level(db_session, 1, "!!!")


class TestRecount:
    def test_totals_follow_linked_products(self, db_session):
        chain = resolve_category_path(db_session, "Electronics>>Audio>>Headphones")
        for sku in ("A", "B"):
            db_session.add(
                Product(
                    sku=sku,
                    spu_no="SPU",
                    name=sku,
                    msrp=10,
                    sale_price=10,
                    category1_id=chain[0].id,
                    category2_id=chain[1].id,
                    category3_id=chain[2].id,
                )
            )
        db_session.flush()

        recount_category_totals(db_session)
        db_session.commit()

        assert db_session.get(CategoryLevel1, chain[0].id).total_product == 2
        assert db_session.get(CategoryLevel3, chain[2].id).total_product == 2
