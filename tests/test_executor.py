import threading

import pytest

from intel_pipeline.connectors.base import KeywordCategory
from intel_pipeline.connectors.registry import ConnectorRegistry
from intel_pipeline.core.pipeline_executor import PipelineExecutor
from intel_pipeline.errors import StreamDisconnect
from intel_pipeline.pipeline.pipeline_data import STATUS_CANCELLED, STATUS_COMPLETED, PipelineConfig

from conftest import ScriptedConnector


def make_config(*domains, **kwargs):
    kwargs.setdefault('delay_between_steps', 0.0)
    return PipelineConfig(query=kwargs.pop('query', "Acme"), available_domains=tuple(domains), **kwargs)


def assert_run_invariants(result):
    assert result.total_steps == len(result.steps)
    assert result.total_steps == result.successful_steps + result.failed_steps
    assert all(step.depth <= result.config.max_depth for step in result.steps)

    by_depth = {}
    for step in result.steps:
        by_depth.setdefault(step.depth, []).append(step)
    for step in result.steps:
        if step.depth == 0:
            assert step.parent_step_id is None
            continue
        parents = [p for p in by_depth.get(step.depth - 1, [])
                   if step.search_parameter in p.keywords_per_category.get(step.category, [])]
        assert parents, f"{step} has no parent holding its keyword"


class TestScenarios:

    def test_single_source_without_acceptor_stops_at_seed(self, registry_connector):
        executor = PipelineExecutor(ConnectorRegistry([registry_connector]))

        result = executor.run(make_config("REGISTRY"))

        assert result.status == STATUS_COMPLETED
        assert result.total_steps == 1
        seed = result.steps[0]
        assert seed.success
        assert seed.depth == 0
        assert seed.category == "company_name"
        assert seed.keywords_per_category == {"person_name": ["John Doe"]}
        assert result.max_depth_reached == 0

    def test_extracted_person_fans_out_to_court(self, registry_connector, court_connector):
        executor = PipelineExecutor(ConnectorRegistry([registry_connector, court_connector]))

        result = executor.run(make_config("REGISTRY", "COURT"))

        assert result.max_depth_reached == 1
        children = [s for s in result.steps if s.depth == 1]
        assert len(children) == 1
        child = children[0]
        assert (child.domain_type, child.search_parameter, child.category) == \
            ("COURT", "John Doe", "person_name")
        seed = next(s for s in result.steps if s.domain_type == "REGISTRY")
        assert child.parent_step_id == seed.id
        assert court_connector.calls == ["Acme", "John Doe"]
        assert_run_invariants(result)

    def test_failing_seed_is_recorded_and_run_continues(self, failing_connector, court_connector):
        executor = PipelineExecutor(ConnectorRegistry([failing_connector]))

        result = executor.run(make_config("BROKEN"))

        assert result.status == STATUS_COMPLETED
        assert result.total_steps == 1
        assert result.failed_steps == 1
        step = result.steps[0]
        assert not step.success
        assert "HTTP 503" in step.error
        assert step.output == []
        assert step.keywords_per_category == {}

    def test_failure_in_one_source_does_not_stop_others(self, failing_connector, registry_connector,
                                                       court_connector):
        registry = ConnectorRegistry([failing_connector, registry_connector, court_connector])
        result = PipelineExecutor(registry).run(make_config("BROKEN", "REGISTRY", "COURT"))

        assert result.failed_steps == 1
        assert result.successful_steps == 3
        assert_run_invariants(result)

    def test_zero_depth_runs_seeds_only(self, registry_connector, court_connector):
        executor = PipelineExecutor(ConnectorRegistry([registry_connector, court_connector]))

        result = executor.run(make_config("REGISTRY", "COURT", max_depth=0))

        assert [s.depth for s in result.steps] == [0, 0]
        assert court_connector.calls == ["Acme"]


class TestFrontierProperties:

    @pytest.fixture
    def cyclic_registry(self):
        # A person found in the registry leads to a company in the court index
        # that leads back to the same person.
        registry = ScriptedConnector(
            "REGISTRY",
            searchable=(KeywordCategory.COMPANY_NAME,),
            retrievable=(KeywordCategory.PERSON_NAME,),
            responses={
                "Acme": [{"person_name": ["John Doe", " John Doe ", ""]}],
                "Acme Holdings": [{"person_name": "John Doe"}],
            },
        )
        court = ScriptedConnector(
            "COURT",
            searchable=(KeywordCategory.PERSON_NAME,),
            retrievable=(KeywordCategory.COMPANY_NAME,),
            responses={"John Doe": [{"company_name": ["Acme Holdings", "Acme"]}]},
        )
        return ConnectorRegistry([registry, court])

    def test_no_duplicate_domain_keyword_pairs(self, cyclic_registry):
        result = PipelineExecutor(cyclic_registry).run(make_config("REGISTRY", "COURT", max_depth=5))

        pairs = [(s.domain_type, s.search_parameter) for s in result.steps]
        assert len(pairs) == len(set(pairs))
        assert_run_invariants(result)

    def test_duplicates_allowed_when_requested(self, cyclic_registry):
        result = PipelineExecutor(cyclic_registry).run(
            make_config("REGISTRY", "COURT", max_depth=3, skip_duplicates=False))

        pairs = [(s.domain_type, s.search_parameter) for s in result.steps]
        assert len(pairs) > len(set(pairs))
        assert_run_invariants(result)

    def test_breadth_first_order(self, cyclic_registry):
        result = PipelineExecutor(cyclic_registry).run(make_config("REGISTRY", "COURT", max_depth=4))

        depths = [s.depth for s in result.steps]
        assert depths == sorted(depths)
        assert [s.sequence for s in result.steps] == sorted(s.sequence for s in result.steps)

    def test_step_ceiling_limits_run(self, cyclic_registry):
        result = PipelineExecutor(cyclic_registry).run(
            make_config("REGISTRY", "COURT", max_depth=5, skip_duplicates=False, max_total_steps=4))

        assert result.total_steps == 4

    def test_concurrent_batches_keep_invariants(self, cyclic_registry):
        result = PipelineExecutor(cyclic_registry).run(
            make_config("REGISTRY", "COURT", max_depth=4, max_concurrent_steps=4))

        assert result.status == STATUS_COMPLETED
        pairs = [(s.domain_type, s.search_parameter) for s in result.steps]
        assert len(pairs) == len(set(pairs))
        assert_run_invariants(result)


class TestEvents:

    def test_event_sequence(self, registry_connector, court_connector):
        events = []
        executor = PipelineExecutor(ConnectorRegistry([registry_connector, court_connector]))

        result = executor.run(make_config("REGISTRY", "COURT"),
                              on_event=lambda event, data: events.append((event, data)))

        names = [name for name, _ in events]
        assert names.count("step") == result.total_steps
        assert names.count("step_started") == result.total_steps
        assert names[-1] == "summary"
        step_numbers = [data['step_number'] for name, data in events if name == "step"]
        assert step_numbers == list(range(1, result.total_steps + 1))
        summary = events[-1][1]
        assert summary['total_steps'] == result.total_steps
        assert summary['id'] == result.id

    def test_started_and_completed_numbers_pair_up_in_batches(self):
        connectors = [ScriptedConnector(name, searchable=(KeywordCategory.COMPANY_NAME,))
                      for name in ("A", "B", "C")]
        events = []
        executor = PipelineExecutor(ConnectorRegistry(connectors))

        executor.run(make_config("A", "B", "C", max_concurrent_steps=3),
                     on_event=lambda event, data: events.append((event, data)))

        started = [(d['step_number'], d['step']['domain_type']) for e, d in events if e == "step_started"]
        done = [(d['step_number'], d['step']['domain_type']) for e, d in events if e == "step"]
        assert started == [(1, "A"), (2, "B"), (3, "C")]
        assert done == started

    def test_replayed_steps_keep_their_number_in_a_batch(self):
        connectors = [ScriptedConnector(name, searchable=(KeywordCategory.COMPANY_NAME,))
                      for name in ("A", "B", "C")]
        executor = PipelineExecutor(ConnectorRegistry(connectors))
        config = make_config("A", "B", "C", max_concurrent_steps=3)
        first = executor.run(config, execution_id="run-1")
        events = []

        # Only B was recorded; A and C run again
        executor.run(config, execution_id="run-1",
                     recorded_steps=[s for s in first.steps if s.domain_type == "B"],
                     on_event=lambda event, data: events.append((event, data)))

        started = [(d['step_number'], d['step']['domain_type']) for e, d in events if e == "step_started"]
        done = [(d['step_number'], d['step']['domain_type']) for e, d in events if e == "step"]
        assert started == [(1, "A"), (3, "C")]
        assert done == [(1, "A"), (2, "B"), (3, "C")]

    def test_receiver_disconnect_cancels(self, registry_connector, court_connector):
        def receiver(event, data):
            if event == "step":
                raise StreamDisconnect("gone")

        executor = PipelineExecutor(ConnectorRegistry([registry_connector, court_connector]))
        result = executor.run(make_config("REGISTRY", "COURT"), on_event=receiver)

        assert result.status == STATUS_CANCELLED
        assert result.total_steps == 1
        assert court_connector.calls == []

    def test_preset_cancel_runs_nothing(self, registry_connector):
        cancel = threading.Event()
        cancel.set()

        result = PipelineExecutor(ConnectorRegistry([registry_connector])).run(
            make_config("REGISTRY"), cancel_event=cancel)

        assert result.status == STATUS_CANCELLED
        assert result.total_steps == 0
        assert registry_connector.calls == []


class TestResume:

    def test_recorded_steps_are_not_searched_again(self, registry_connector, court_connector):
        registry = ConnectorRegistry([registry_connector, court_connector])
        executor = PipelineExecutor(registry)
        config = make_config("REGISTRY", "COURT")
        first = executor.run(config, execution_id="run-1")

        # Keep only the seeds, as if the run had stopped after depth 0
        partial = [s for s in first.steps if s.depth == 0]
        registry_connector.calls.clear()
        court_connector.calls.clear()
        events = []

        resumed = executor.run(config, execution_id="run-1", recorded_steps=partial,
                               on_event=lambda event, data: events.append(event))

        assert registry_connector.calls == []
        assert court_connector.calls == ["John Doe"]
        assert resumed.total_steps == first.total_steps
        assert {s.id for s in resumed.steps if s.depth == 0} == {s.id for s in partial}
        assert events.count("step_started") == 1
        assert_run_invariants(resumed)
