from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockmate.catalog.service import create_item
from stockmate.db import Base
from stockmate.errors import (
    ImmutableRecordError,
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    NotManagedError,
)
from stockmate.ledger.posting import make_posting
from stockmate.ledger.service import (
    adjust_stock,
    current_stock,
    current_stock_map,
    list_transactions,
    post,
    post_batch,
    stock_summary,
)
from stockmate.models import StockTransaction


def create_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)()


def create_component(db, sku="PART-A", stock_managed=True, reorder_point=None):
    return create_item(
        db,
        sku=sku,
        name=sku.title(),
        item_type="component",
        stock_managed=stock_managed,
        reorder_point=reorder_point,
    )


def ledger_total(db, item_id):
    total = Decimal("0")
    for row in db.query(StockTransaction).filter(StockTransaction.item_id == item_id).all():
        qty = Decimal(row.qty)
        total += qty if row.direction == "IN" else -qty
    return total


def test_stock_starts_at_zero_and_follows_in_and_out():
    db = create_session()
    item = create_component(db)

    assert current_stock(db, item.id) == Decimal("0")
    post(db, item.id, Decimal("10"), "IN")
    post(db, item.id, Decimal("3.5"), "OUT")
    db.commit()

    assert current_stock(db, item.id) == Decimal("6.5")


def test_post_rejects_non_positive_quantities():
    db = create_session()
    item = create_component(db)

    with pytest.raises(InvalidQuantityError):
        post(db, item.id, Decimal("0"), "IN")
    with pytest.raises(InvalidQuantityError):
        post(db, item.id, Decimal("-2"), "IN")


def test_post_rejects_unknown_and_unmanaged_items():
    db = create_session()
    unmanaged = create_component(db, "LABEL", stock_managed=False)

    with pytest.raises(NotFoundError):
        post(db, 4242, Decimal("1"), "IN")
    with pytest.raises(NotManagedError):
        post(db, unmanaged.id, Decimal("1"), "IN")


def test_out_beyond_stock_is_rejected():
    db = create_session()
    item = create_component(db)
    post(db, item.id, Decimal("1"), "IN")
    db.commit()

    with pytest.raises(InsufficientStockError) as exc_info:
        post(db, item.id, Decimal("1.5"), "OUT")

    shortage = exc_info.value.shortages[0]
    assert shortage["item_id"] == item.id
    assert shortage["required_qty"] == Decimal("1.5")
    assert shortage["available_qty"] == Decimal("1")
    assert current_stock(db, item.id) == Decimal("1")


def test_post_batch_is_all_or_nothing():
    db = create_session()
    part_a = create_component(db, "PART-A")
    part_b = create_component(db, "PART-B")
    post(db, part_a.id, Decimal("10"), "IN")
    post(db, part_b.id, Decimal("1"), "IN")
    db.commit()

    postings = [
        make_posting(part_a.id, Decimal("6"), "OUT"),
        make_posting(part_b.id, Decimal("1.5"), "OUT"),
    ]
    with pytest.raises(InsufficientStockError) as exc_info:
        post_batch(db, postings)
    db.rollback()

    assert [shortage["item_id"] for shortage in exc_info.value.shortages] == [part_b.id]
    assert db.query(StockTransaction).count() == 2
    assert current_stock_map(db, [part_a.id, part_b.id]) == {part_a.id: Decimal("10"), part_b.id: Decimal("1")}


def test_post_batch_checks_the_net_effect_of_repeated_items():
    db = create_session()
    item = create_component(db)
    post(db, item.id, Decimal("2"), "IN")
    db.commit()

    with pytest.raises(InsufficientStockError):
        post_batch(db, [make_posting(item.id, Decimal("1.5"), "OUT"), make_posting(item.id, Decimal("1"), "OUT")])
    db.rollback()

    transactions = post_batch(db, [make_posting(item.id, Decimal("1.5"), "OUT"), make_posting(item.id, Decimal("0.5"), "OUT")])
    db.commit()

    assert len({transaction.posting_group for transaction in transactions}) == 1
    assert current_stock(db, item.id) == Decimal("0")


@pytest.mark.parametrize(
    "targets",
    [
        ["5", "2", "2", "0", "7.25"],
        ["0.000001", "100", "99.999999"],
    ],
)
def test_adjust_reaches_absolute_target_and_ledger_sum_matches(targets):
    db = create_session()
    item = create_component(db)
    post(db, item.id, Decimal("3"), "IN")
    db.commit()

    for target in targets:
        adjust_stock(db, item.id, Decimal(target), note="count")
        db.commit()
        assert current_stock(db, item.id) == Decimal(target)
        assert current_stock(db, item.id) == ledger_total(db, item.id)


def test_adjust_to_current_level_posts_nothing():
    db = create_session()
    item = create_component(db)
    post(db, item.id, Decimal("4"), "IN")
    db.commit()

    assert adjust_stock(db, item.id, Decimal("4")) is None
    assert db.query(StockTransaction).count() == 1


def test_adjust_records_magnitude_and_direction():
    db = create_session()
    item = create_component(db)
    post(db, item.id, Decimal("10"), "IN")
    db.commit()

    down = adjust_stock(db, item.id, Decimal("6"))
    up = adjust_stock(db, item.id, Decimal("8"))
    db.commit()

    assert (down.transaction_type, down.direction, down.qty) == ("ADJUST", "OUT", Decimal("4"))
    assert (up.transaction_type, up.direction, up.qty) == ("ADJUST", "IN", Decimal("2"))


def test_adjust_rejects_negative_target_and_unmanaged_items():
    db = create_session()
    item = create_component(db)
    unmanaged = create_component(db, "LABEL", stock_managed=False)

    with pytest.raises(InvalidQuantityError):
        adjust_stock(db, item.id, Decimal("-1"))
    with pytest.raises(NotManagedError):
        adjust_stock(db, unmanaged.id, Decimal("1"))


def test_transactions_cannot_be_updated_or_deleted():
    db = create_session()
    item = create_component(db)
    transaction = post(db, item.id, Decimal("1"), "IN")
    db.commit()

    transaction.qty = Decimal("5")
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()

    db.delete(db.get(StockTransaction, transaction.id))
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()

    assert current_stock(db, item.id) == Decimal("1")


def test_list_transactions_reports_running_balance():
    db = create_session()
    item = create_component(db)
    post(db, item.id, Decimal("5"), "IN")
    post(db, item.id, Decimal("2"), "OUT")
    adjust_stock(db, item.id, Decimal("10"))
    db.commit()

    history = list_transactions(db, item.id)

    assert [(row["transaction_type"], row["signed_qty"], row["balance"]) for row in history] == [
        ("IN", Decimal("5"), Decimal("5")),
        ("OUT", Decimal("-2"), Decimal("3")),
        ("ADJUST", Decimal("7"), Decimal("10")),
    ]


def test_stock_summary_surfaces_items_below_reorder_point_first():
    db = create_session()
    plenty = create_component(db, "PLENTY", reorder_point=Decimal("1"))
    short = create_component(db, "SHORT", reorder_point=Decimal("10"))
    untracked = create_component(db, "NO-REORDER")
    create_component(db, "LABEL", stock_managed=False)
    post(db, plenty.id, Decimal("50"), "IN")
    post(db, short.id, Decimal("4"), "IN")
    post(db, untracked.id, Decimal("2"), "IN")
    db.commit()

    rows = stock_summary(db, managed=True)

    assert [row["sku"] for row in rows] == ["SHORT", "PLENTY", "NO-REORDER"]
    assert rows[0]["below_reorder_point"] is True
    assert rows[0]["reorder_gap"] == Decimal("-6")
    assert rows[1]["below_reorder_point"] is False
    assert rows[2]["reorder_gap"] is None
    assert rows[0]["last_movement_at"] is not None


def test_stock_summary_filters_by_text_and_type():
    db = create_session()
    create_component(db, "PART-A")
    create_component(db, "BOLT-M4")
    create_item(db, sku="ASM-1", name="Assembly", item_type="assembly")
    db.commit()

    assert [row["sku"] for row in stock_summary(db, q="bolt")] == ["BOLT-M4"]
    assert [row["sku"] for row in stock_summary(db, item_type="assembly")] == ["ASM-1"]
