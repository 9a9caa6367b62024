import pytest
from sqlalchemy.exc import IntegrityError

from asset_sync.db.model.sync_job import JOB_CANCELLED, JOB_COMPLETED, JOB_PENDING, JOB_RUNNING
from asset_sync.repository import shop_repo, sync_job_repo


def test_partial_index_allows_one_active_job_per_shop(db, shop):
    sync_job_repo.insert_pending(db, shop.id)

    with pytest.raises(IntegrityError):
        sync_job_repo.insert_pending(db, shop.id)
    db.rollback()


def test_finished_jobs_do_not_block_new_ones(db, shop):
    job = sync_job_repo.insert_pending(db, shop.id)
    assert sync_job_repo.conditional_update(db, job.id, (JOB_PENDING,), status=JOB_CANCELLED)

    again = sync_job_repo.insert_pending(db, shop.id)

    assert sync_job_repo.get_active_for_shop(db, shop.id).id == again.id


def test_conditional_update_is_compare_and_swap(db, shop):
    job = sync_job_repo.insert_pending(db, shop.id)

    assert sync_job_repo.conditional_update(db, job.id, (JOB_PENDING,), status=JOB_RUNNING) is True
    assert sync_job_repo.conditional_update(db, job.id, (JOB_PENDING,), status=JOB_RUNNING) is False
    assert sync_job_repo.conditional_update(db, job.id, (JOB_RUNNING,), status=JOB_COMPLETED) is True
    assert sync_job_repo.get_status(db, job.id) == JOB_COMPLETED


def test_oldest_pending_and_listing(db, shop):
    other = shop_repo.upsert(db, "other.myshopify.com", dam_base_url="https://o.dam.example")
    first = sync_job_repo.insert_pending(db, shop.id)
    sync_job_repo.insert_pending(db, other.id, trigger="scheduled")

    assert sync_job_repo.oldest_pending_id(db) == first.id
    assert [j.id for j in sync_job_repo.list_for_shop(db, shop.id)] == [first.id]
    assert sync_job_repo.recent_finished(db, shop.id) == []


def test_shop_upsert_normalizes_domain_and_updates(db):
    created = shop_repo.upsert(db, " Mixed.MyShopify.com ", sync_tags="a,b")
    updated = shop_repo.upsert(db, "mixed.myshopify.com", sync_tags="c", not_a_column="x")

    assert created.id == updated.id
    assert updated.shop_domain == "mixed.myshopify.com"
    assert updated.sync_tags == "c"
    assert updated.sync_tag_list == ["c"]
