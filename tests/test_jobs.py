"""Tests for the periodic tick jobs and scheduler lifecycle."""

from unittest.mock import MagicMock, patch

from outreach_flow.scheduler import jobs


class TestWorkflowTick:
    @patch("outreach_flow.workflow.engine.build_engine")
    def test_runs_engine_tick(self, mock_build):
        mock_build.return_value.run_tick.return_value = {"processed": 2}

        assert jobs.workflow_tick() == {"processed": 2}
        store = mock_build.call_args.args[0]
        assert store.tenant_id is None


class TestSlotTick:
    @patch("outreach_flow.outreach.slot_processor.process_pending_slots")
    def test_processes_each_configured_account(self, mock_process):
        mock_process.side_effect = [{"processed": 3, "failed": 1}, RuntimeError("db gone"), {"processed": 1, "failed": 0}]

        with patch.object(jobs, "settings") as mock_settings:
            mock_settings.slot_account_pairs = [("acc-1", "t1"), ("acc-2", "t1"), ("acc-3", "t2")]
            totals = jobs.slot_tick()

        assert totals == {"processed": 4, "failed": 1}
        assert [c.args for c in mock_process.call_args_list] == [("acc-1", "t1"), ("acc-2", "t1"), ("acc-3", "t2")]


class TestSchedulerLifecycle:
    @patch("outreach_flow.scheduler.jobs.BackgroundScheduler")
    def test_start_registers_jobs_once(self, mock_cls):
        scheduler = MagicMock()
        scheduler.running = True
        scheduler.get_jobs.return_value = []
        mock_cls.return_value = scheduler

        with patch.object(jobs, "settings") as mock_settings:
            mock_settings.workflow_tick_minutes = 5
            mock_settings.slot_tick_minutes = 5
            mock_settings.slot_account_pairs = [("acc-1", "t1")]
            try:
                assert jobs.start_scheduler() is scheduler
                assert jobs.start_scheduler() is scheduler
            finally:
                jobs.stop_scheduler()

        mock_cls.assert_called_once_with(job_defaults={"coalesce": True, "max_instances": 1})
        job_ids = [c.kwargs["id"] for c in scheduler.add_job.call_args_list]
        assert job_ids == ["workflow_tick", "slot_tick"]
        scheduler.shutdown.assert_called_once_with(wait=False)

    @patch("outreach_flow.scheduler.jobs.BackgroundScheduler")
    def test_slot_tick_disabled_without_accounts(self, mock_cls):
        scheduler = MagicMock()
        scheduler.get_jobs.return_value = []
        mock_cls.return_value = scheduler

        with patch.object(jobs, "settings") as mock_settings:
            mock_settings.workflow_tick_minutes = 5
            mock_settings.slot_account_pairs = []
            try:
                jobs.start_scheduler()
            finally:
                jobs.stop_scheduler()

        assert [c.kwargs["id"] for c in scheduler.add_job.call_args_list] == ["workflow_tick"]
