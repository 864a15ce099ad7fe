from specmatch.core.celery_app import get_celery_app


class TestCeleryApp:

    def test_memory_backend_runs_eagerly(self):
        app = get_celery_app()
        assert app.conf.task_always_eager is True
        assert app.conf.task_eager_propagates is True

    def test_tasks_are_not_redelivered(self):
        # Advance only drives jobs still in "extracting", so a redelivered
        # task could never resume a half-processed job
        app = get_celery_app()
        assert app.conf.task_acks_late is False
        assert app.conf.task_reject_on_worker_lost is not True
