"""Tests for the per-lobby action log."""
import os

from klaverjas.server.game_logger import GameLogger


def test_writes_actions_and_events(tmp_path):
    logger = GameLogger('ABC123', str(tmp_path))
    logger.log_event('new game, dealer 0')
    logger.log_action(1, 3, 'playing', 'trickEnd', 'PlayCard seat=2 card=J_hearts')

    assert logger.path == os.path.join(str(tmp_path), 'lobby_ABC123.log')
    with open(logger.path, encoding='utf-8') as f:
        assert f.read().splitlines() == [
            '# new game, dealer 0',
            'r1t3 playing -> trickEnd | PlayCard seat=2 card=J_hearts',
        ]


def test_missing_trick_is_logged_as_zero(tmp_path):
    logger = GameLogger('ABC123', str(tmp_path))
    logger.log_action(2, None, 'roundEnd', 'trump', 'StartNextRound')
    with open(logger.path, encoding='utf-8') as f:
        assert f.read() == 'r2t0 roundEnd -> trump | StartNextRound\n'


def test_disabled_without_directory(tmp_path):
    logger = GameLogger('ABC123', '')
    logger.log_event('ignored')
    logger.log_action(1, 1, 'trump', 'playing', 'ChooseTrump seat=1 suit=hearts')
    assert logger.path is None
    assert os.listdir(str(tmp_path)) == []
