"""Tests for the in-memory document store."""
import pytest

from klaverjas.server.store import (
    DELETE, SERVER_TIMESTAMP, DocumentNotFound, MemoryDocumentStore, VersionConflict, paths_overlap,
    split_path,
)


class TestPaths:

    def test_split_ignores_empty_segments(self):
        assert split_path('/lobbies//ABC/game/') == ['lobbies', 'ABC', 'game']

    def test_overlap(self):
        assert paths_overlap(['lobbies', 'A'], ['lobbies', 'A', 'game'])
        assert paths_overlap(['lobbies'], ['lobbies', 'B'])
        assert not paths_overlap(['lobbies', 'A'], ['lobbies', 'B'])


class TestReadWrite:

    def test_set_and_read(self, store):
        store.set('lobbies/A', {'status': 'waiting'})
        assert store.read('lobbies/A/status') == 'waiting'

    def test_missing_path_raises(self, store):
        with pytest.raises(DocumentNotFound):
            store.read('lobbies/NOPE')
        assert store.get('lobbies/NOPE', 'fallback') == 'fallback'

    def test_none_is_stored_explicitly(self, store):
        store.set('lobbies/A', {'game': {'trump': 'hearts'}})
        store.update('lobbies/A', {'game/trump': None})
        assert store.read('lobbies/A/game') == {'trump': None}

    def test_reads_are_copies(self, store):
        store.set('lobbies/A', {'players': {}})
        doc = store.read('lobbies/A')
        doc['players']['x'] = 1
        assert store.read('lobbies/A/players') == {}

    def test_multi_path_update(self, store):
        store.set('lobbies/A', {'version': 0})
        store.update('lobbies/A', {'version': 1, 'game/phase': 'trump', 'status': 'playing'})
        assert store.read('lobbies/A') == {'version': 1, 'game': {'phase': 'trump'}, 'status': 'playing'}

    def test_update_can_delete_alongside_writes(self, store):
        store.set('lobbies/A', {'players': {'p1': {}, 'p2': {}}, 'version': 1})
        store.update('lobbies/A', {'players/p1': DELETE, 'version': 2}, if_match={'version': 1})
        assert store.read('lobbies/A') == {'players': {'p2': {}}, 'version': 2}

    def test_server_timestamp_uses_store_clock(self):
        store = MemoryDocumentStore(clock=lambda: 1234.5)
        store.set('lobbies/A', {'createdAt': SERVER_TIMESTAMP})
        store.update('lobbies/A', {'players/p1/lastSeen': SERVER_TIMESTAMP})
        assert store.read('lobbies/A') == {'createdAt': 1234500, 'players': {'p1': {'lastSeen': 1234500}}}

    def test_delete(self, store):
        store.set('lobbies/A', {'players': {'p1': {}, 'p2': {}}})
        store.delete('lobbies/A/players/p1')
        assert store.read('lobbies/A/players') == {'p2': {}}
        store.delete('lobbies/A')
        assert not store.exists('lobbies/A')


class TestConditionalUpdate:

    def test_matching_version_writes(self, store):
        store.set('lobbies/A', {'version': 3})
        store.update('lobbies/A', {'version': 4}, if_match={'version': 3})
        assert store.read('lobbies/A/version') == 4

    def test_stale_version_conflicts_and_writes_nothing(self, store):
        store.set('lobbies/A', {'version': 3, 'game': None})
        with pytest.raises(VersionConflict):
            store.update('lobbies/A', {'version': 3, 'game': {'x': 1}}, if_match={'version': 2})
        assert store.read('lobbies/A') == {'version': 3, 'game': None}


class TestSubscriptions:

    def test_subscriber_sees_writes_below_its_path(self, store):
        seen = []
        store.set('lobbies/A', {'game': None})
        store.subscribe('lobbies/A', seen.append)
        store.update('lobbies/A', {'game/phase': 'trump'})
        assert seen == [{'game': {'phase': 'trump'}}]

    def test_unrelated_writes_are_not_delivered(self, store):
        seen = []
        store.subscribe('lobbies/A/game', seen.append)
        store.set('lobbies/B', {'game': 1})
        store.update('lobbies/A', {'players/p1': {'name': 'x'}})
        assert seen == []

    def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe('lobbies/A', seen.append)
        unsubscribe()
        store.set('lobbies/A', {})
        assert seen == []

    def test_delete_notifies_with_none(self, store):
        seen = []
        store.set('lobbies/A', {'x': 1})
        store.subscribe('lobbies/A', seen.append)
        store.delete('lobbies/A')
        assert seen == [None]


class TestDisconnect:

    def test_fallback_applied_on_disconnect(self, store):
        store.set('lobbies/A', {'players': {'p1': {'connected': True, 'name': 'Anna'}}})
        store.on_disconnect('p1', 'lobbies/A/players/p1', {'connected': False})
        store.disconnect('p1')
        assert store.read('lobbies/A/players/p1') == {'connected': False, 'name': 'Anna'}

    def test_cancelled_fallback_is_not_applied(self, store):
        store.set('lobbies/A', {'players': {'p1': {'connected': True}}})
        store.on_disconnect('p1', 'lobbies/A/players/p1', {'connected': False})
        store.cancel_on_disconnect('p1')
        store.disconnect('p1')
        assert store.read('lobbies/A/players/p1/connected') is True

    def test_initial_tree(self):
        store = MemoryDocumentStore({'lobbies': {'A': {'version': 0}}})
        assert store.read('lobbies/A/version') == 0

    def test_fallback_timestamp_is_taken_at_disconnect(self):
        now = [100.0]
        store = MemoryDocumentStore(clock=lambda: now[0])
        store.set('lobbies/A', {'players': {'p1': {'connected': True, 'lastSeen': 100000}}})
        store.on_disconnect('p1', 'lobbies/A/players/p1', {'connected': False, 'lastSeen': SERVER_TIMESTAMP})
        now[0] = 3700.0
        store.disconnect('p1')
        assert store.read('lobbies/A/players/p1') == {'connected': False, 'lastSeen': 3700000}

    def test_registering_same_path_replaces_fallback(self, store):
        store.set('lobbies/A', {'players': {'p1': {}}})
        store.on_disconnect('p1', 'lobbies/A/players/p1', {'connected': False, 'lastSeen': 1})
        store.on_disconnect('p1', 'lobbies/A/players/p1', {'connected': False, 'lastSeen': 2})
        store.disconnect('p1')
        assert store.read('lobbies/A/players/p1') == {'connected': False, 'lastSeen': 2}
