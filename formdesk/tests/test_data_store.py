import json

from formdesk.app.state.data_store import TemplateDataStore
from formdesk.app.state.generation_cache import GenerationCache
from formdesk.app.storage.debounce import DebouncedWriter
from formdesk.app.storage.kv import InMemoryKeyValueStore, values_key
from formdesk.tests.fixtures.clock import FakeClock


def _store(autosave=False, initial=None, window_seconds=0.0):
    kv = InMemoryKeyValueStore(initial)
    writer = DebouncedWriter(kv, window_seconds=window_seconds)
    return TemplateDataStore(GenerationCache(), writer=writer, autosave=autosave), kv, writer


def test_values_are_isolated_per_template():
    store, _, _ = _store()

    store.switch_to("designation")
    store.set_value("designation", "entreprise", "ACME")
    store.switch_to("negociation")
    store.set_value("negociation", "entreprise", "Globex")

    assert store.switch_to("designation") == {"entreprise": "ACME"}
    assert store.get_values("negociation") == {"entreprise": "Globex"}


def test_untouched_template_is_empty():
    store, _, _ = _store()

    assert store.get_values("custom") == {}


def test_get_values_returns_a_copy():
    store, _, _ = _store()
    store.set_value("custom", "objet", "A")

    values = store.get_values("custom")
    values["objet"] = "mutated"

    assert store.get_values("custom") == {"objet": "A"}


def test_none_is_stored_as_empty_string():
    store, _, _ = _store()
    store.set_value("custom", "objet", None)

    assert store.get_values("custom") == {"objet": ""}


def test_clear_only_affects_one_template():
    store, _, _ = _store()
    store.set_value("custom", "objet", "A")
    store.set_value("designation", "entreprise", "ACME")

    store.clear("custom")

    assert store.get_values("custom") == {}
    assert store.get_values("designation") == {"entreprise": "ACME"}


def test_autosave_persists_active_template_values():
    store, kv, _ = _store(autosave=True)
    store.switch_to("custom")
    store.set_value("custom", "objet", "A")

    assert json.loads(kv.read(values_key("custom"))) == {"objet": "A"}


def test_autosave_flushes_outgoing_template_on_switch():
    clock = [0.0]
    kv = InMemoryKeyValueStore()
    writer = DebouncedWriter(kv, window_seconds=0.5, clock=lambda: clock[0])
    store = TemplateDataStore(GenerationCache(), writer=writer, autosave=True)

    store.switch_to("custom")
    store.set_value("custom", "objet", "A")
    assert kv.read(values_key("custom")) is None

    store.switch_to("designation")

    assert json.loads(kv.read(values_key("custom"))) == {"objet": "A"}


def test_autosaved_values_are_reloaded():
    store, _, _ = _store(
        autosave=True,
        initial={values_key("custom"): json.dumps({"objet": "Saved"})},
    )

    assert store.switch_to("custom") == {"objet": "Saved"}


def test_corrupt_autosaved_values_load_as_empty():
    store, _, _ = _store(autosave=True, initial={values_key("custom"): "{not json"})

    assert store.switch_to("custom") == {}


def test_without_autosave_nothing_is_written():
    store, kv, _ = _store(autosave=False)
    store.switch_to("custom")
    store.set_value("custom", "objet", "A")

    assert kv.snapshot() == {}


def test_autosaved_values_pending_in_the_window_are_reloaded():
    clock = FakeClock()
    kv = InMemoryKeyValueStore({values_key("custom"): json.dumps({"objet": "Old"})})
    writer = DebouncedWriter(kv, window_seconds=0.5, clock=clock)
    first = TemplateDataStore(GenerationCache(), writer=writer, autosave=True)
    first.switch_to("custom")
    first.set_value("custom", "objet", "New")

    reopened = TemplateDataStore(GenerationCache(), writer=writer, autosave=True)

    assert json.loads(kv.read(values_key("custom"))) == {"objet": "Old"}
    assert reopened.switch_to("custom") == {"objet": "New"}


def test_namespaces_keep_autosaved_values_apart():
    kv = InMemoryKeyValueStore()
    writer = DebouncedWriter(kv, window_seconds=0.0)
    alice = TemplateDataStore(GenerationCache(), writer=writer, autosave=True, namespace="alice")
    bob = TemplateDataStore(GenerationCache(), writer=writer, autosave=True, namespace="bob")

    alice.switch_to("designation")
    alice.set_value("designation", "nomDestinataire", "Alice")

    assert bob.switch_to("designation") == {}
    assert json.loads(kv.read(values_key("designation", "alice"))) == {
        "nomDestinataire": "Alice"
    }
    assert kv.read(values_key("designation")) is None
