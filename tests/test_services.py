#!/usr/bin/env python3
"""
Unit tests for the app/repositories and app/services layer.

Run with:
    python -m pytest tests/test_services.py
"""
import json
import os
import random
import shutil
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.errors import (
    DuplicateMatchup, GameNotFound, MatchupNotFound, NoStatsFound,
    ParticipantNotFound,
)
from app.models import Matchup, Outcome, Record, StrayEntry
from app.repositories import TallyRepository
from app.services import (
    MediaPicker, RefStrategy, TallyService, parse_tally_ref, win_rate,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

STORED = {
    'Chess': {
        'Alice vs Bob': {
            'Alice': {'wins': 2, 'losses': 1},
            'Bob': {'wins': 1, 'losses': 2},
            'createdAt': '2025-01-01T00:00:00.000Z',
        },
        'notes': 'not a matchup',
    },
    'Valorant': {
        'Red vs Blue': {
            'Red': {'wins': 0, 'losses': 3},
            'Blue': {'wins': 3, 'losses': 0},
            'createdAt': '2025-01-02T00:00:00.000Z',
        },
    },
}


class TmpDirMixin(unittest.TestCase):
    """Creates a fresh temp directory for each test and cd's into it."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self._orig = os.getcwd()
        os.chdir(self.tmp)

    def tearDown(self):
        os.chdir(self._orig)
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _path(self, name: str) -> str:
        return os.path.join(self.tmp, name)

    def _write(self, name: str, data) -> str:
        path = self._path(name)
        with open(path, 'w') as f:
            json.dump(data, f)
        return path

    def _service(self, name: str = 'tallies.json') -> TallyService:
        return TallyService(TallyRepository(self._path(name)))


# ===========================================================================
# Repository tests
# ===========================================================================

class TestTallyRepository(TmpDirMixin):

    def test_missing_file_starts_empty(self):
        self.assertEqual(TallyRepository(self._path('none.json')).data, {})

    def test_corrupt_file_returns_empty(self):
        path = self._path('tallies.json')
        with open(path, 'w') as f:
            f.write('NOT JSON')
        with self.assertLogs('tally.repository', level='ERROR'):
            repo = TallyRepository(path)
        self.assertEqual(repo.data, {})

    def test_malformed_record_returns_empty(self):
        for bad in (None, 'x', [1]):
            stored = {'Chess': {'A vs B': {
                'A': {'wins': bad, 'losses': 0},
                'B': {'wins': 0, 'losses': 0},
                'createdAt': 'now',
            }}}
            path = self._write('tallies.json', stored)
            with self.assertLogs('tally.repository', level='ERROR'):
                repo = TallyRepository(path)
            self.assertEqual(repo.data, {})

    def test_non_object_document_returns_empty(self):
        path = self._write('tallies.json', ['a', 'b'])
        with self.assertLogs('tally.repository', level='ERROR'):
            self.assertEqual(TallyRepository(path).data, {})

    def test_entries_are_tagged_on_load(self):
        repo = TallyRepository(self._write('tallies.json', STORED))
        chess = repo.data['Chess']
        self.assertIsInstance(chess['Alice vs Bob'], Matchup)
        self.assertIsInstance(chess['notes'], StrayEntry)
        self.assertEqual(chess['Alice vs Bob'].participants['Alice'], Record(2, 1))

    def test_round_trip_preserves_document(self):
        path = self._write('tallies.json', STORED)
        repo = TallyRepository(path)
        self.assertTrue(repo.save())
        with open(path) as f:
            self.assertEqual(json.load(f), STORED)

    def test_malformed_game_and_matchup_keys_survive_save(self):
        stored = dict(STORED)
        stored['Meta'] = 'x'
        stored['Go'] = {'Carol vs Dan': {
            'Carol': {'wins': 1, 'losses': 0},
            'Dan': {'wins': 0, 'losses': 1},
            'createdAt': '2025-01-03T00:00:00.000Z',
            'note': 'rematch pending',
        }}
        path = self._write('tallies.json', stored)
        service = TallyService(TallyRepository(path))
        go = service.data['Go']['Carol vs Dan']
        self.assertEqual(list(go.participants), ['Carol', 'Dan'])
        self.assertNotIn('Meta', service.data)

        service.create_matchup('Chess', 'Eve', 'Frank')
        with open(path) as f:
            saved = json.load(f)
        self.assertEqual(saved['Meta'], 'x')
        self.assertEqual(saved['Go'], stored['Go'])
        self.assertIn('Eve vs Frank', saved['Chess'])

    def test_save_is_pretty_printed(self):
        path = self._write('tallies.json', STORED)
        TallyRepository(path).save()
        with open(path) as f:
            self.assertIn('\n  "Chess": {', f.read())

    def test_save_failure_is_logged_not_raised(self):
        repo = TallyRepository(self._path('missing-dir/tallies.json'))
        with self.assertLogs('tally.repository', level='ERROR'):
            self.assertFalse(repo.save())


# ===========================================================================
# Service tests
# ===========================================================================

class TestParseTallyRef(unittest.TestCase):

    def test_composite_token(self):
        self.assertEqual(parse_tally_ref('Chess|Alice vs Bob'), ('Chess', 'Alice vs Bob'))

    def test_splits_on_first_pipe_only(self):
        self.assertEqual(parse_tally_ref('Chess|A|B'), ('Chess', 'A|B'))

    def test_direct_search_without_pipe_has_no_matchup(self):
        self.assertEqual(parse_tally_ref('Chess', RefStrategy.DIRECT_SEARCH), ('Chess', None))

    def test_strict_split_without_pipe_has_empty_matchup(self):
        self.assertEqual(parse_tally_ref('Chess', RefStrategy.STRICT_SPLIT), ('Chess', ''))


class TestWinRate(unittest.TestCase):

    def test_no_games(self):
        self.assertEqual(win_rate(0, 0), '0.0')

    def test_three_of_four(self):
        self.assertEqual(win_rate(3, 1), '75.0')

    def test_rounds_to_one_decimal(self):
        self.assertEqual(win_rate(1, 2), '33.3')

    def test_all_wins(self):
        self.assertEqual(win_rate(1, 0), '100.0')


class TestTallyServiceCreate(TmpDirMixin):

    def test_creates_zeroed_matchup(self):
        svc = self._service()
        matchup_id, matchup = svc.create_matchup('Chess', 'Alice', 'Bob')
        self.assertEqual(matchup_id, 'Alice vs Bob')
        self.assertEqual(list(matchup.participants), ['Alice', 'Bob'])
        self.assertEqual(matchup.participants['Alice'], Record(0, 0))
        self.assertEqual(matchup.participants['Bob'], Record(0, 0))
        self.assertTrue(matchup.created_at)

    def test_persists_on_create(self):
        path = self._path('tallies.json')
        TallyService(TallyRepository(path)).create_matchup('Chess', 'Alice', 'Bob')
        with open(path) as f:
            stored = json.load(f)
        self.assertEqual(stored['Chess']['Alice vs Bob']['Alice'], {'wins': 0, 'losses': 0})
        self.assertIn('createdAt', stored['Chess']['Alice vs Bob'])

    def test_duplicate_rejected(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        with self.assertRaises(DuplicateMatchup) as ctx:
            svc.create_matchup('Chess', 'Alice', 'Bob')
        self.assertFalse(ctx.exception.reversed)

    def test_reverse_duplicate_rejected(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        with self.assertRaises(DuplicateMatchup) as ctx:
            svc.create_matchup('Chess', 'Bob', 'Alice')
        self.assertTrue(ctx.exception.reversed)
        self.assertEqual(ctx.exception.existing_id, 'Alice vs Bob')

    def test_duplicate_check_is_case_sensitive(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        matchup_id, _ = svc.create_matchup('Chess', 'alice', 'bob')
        self.assertEqual(matchup_id, 'alice vs bob')
        self.assertEqual(len(svc.list_all()), 2)

    def test_same_pair_in_other_game_allowed(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        svc.create_matchup('Go', 'Bob', 'Alice')
        self.assertEqual([g for g, _, _ in svc.list_all()], ['Chess', 'Go'])


class TestTallyServiceOutcomes(TmpDirMixin):

    def setUp(self):
        super().setUp()
        self.svc = self._service()
        self.svc.create_matchup('Chess', 'Alice', 'Bob')

    def _records(self):
        _, matchup = self.svc.get_record('Chess', 'Alice vs Bob')
        return matchup.participants['Alice'], matchup.participants['Bob']

    def test_win_updates_both_sides(self):
        self.svc.record_outcome('Chess', 'Alice vs Bob', 'Alice', Outcome.WIN)
        alice, bob = self._records()
        self.assertEqual(alice, Record(1, 0))
        self.assertEqual(bob, Record(0, 1))

    def test_loss_updates_both_sides(self):
        self.svc.record_outcome('Chess', 'Alice vs Bob', 'Alice', Outcome.LOSS)
        alice, bob = self._records()
        self.assertEqual(alice, Record(0, 1))
        self.assertEqual(bob, Record(1, 0))

    def test_win_then_loss_accumulates(self):
        self.svc.record_outcome('Chess', 'Alice vs Bob', 'Alice', Outcome.WIN)
        self.svc.record_outcome('Chess', 'Alice vs Bob', 'Alice', Outcome.LOSS)
        alice, bob = self._records()
        self.assertEqual(alice, Record(1, 1))
        self.assertEqual(bob, Record(1, 1))

    def test_participant_match_ignores_case(self):
        matchup_id, name, _ = self.svc.record_outcome(
            'Chess', 'alice VS bob', 'alice', Outcome.WIN)
        self.assertEqual(matchup_id, 'Alice vs Bob')
        self.assertEqual(name, 'Alice')
        self.assertEqual(self._records()[0], Record(1, 0))

    def test_unknown_game(self):
        with self.assertRaises(GameNotFound):
            self.svc.record_outcome('Checkers', 'Alice vs Bob', 'Alice', Outcome.WIN)

    def test_game_lookup_is_case_sensitive(self):
        with self.assertRaises(GameNotFound):
            self.svc.record_outcome('chess', 'Alice vs Bob', 'Alice', Outcome.WIN)

    def test_unknown_matchup(self):
        with self.assertRaises(MatchupNotFound):
            self.svc.record_outcome('Chess', 'Alice vs Carol', 'Alice', Outcome.WIN)

    def test_missing_matchup(self):
        with self.assertRaises(MatchupNotFound):
            self.svc.record_outcome('Chess', None, 'Alice', Outcome.WIN)

    def test_unknown_participant(self):
        with self.assertRaises(ParticipantNotFound):
            self.svc.record_outcome('Chess', 'Alice vs Bob', 'Carol', Outcome.WIN)

    def test_created_at_is_not_a_participant(self):
        with self.assertRaises(ParticipantNotFound):
            self.svc.record_outcome('Chess', 'Alice vs Bob', 'createdAt', Outcome.WIN)

    def test_failed_lookup_changes_nothing(self):
        with self.assertRaises(ParticipantNotFound):
            self.svc.record_outcome('Chess', 'Alice vs Bob', 'Carol', Outcome.WIN)
        self.assertEqual(self._records(), (Record(0, 0), Record(0, 0)))

    def test_outcome_persisted(self):
        self.svc.record_outcome('Chess', 'Alice vs Bob', 'Bob', Outcome.WIN)
        reloaded = self._service()
        _, matchup = reloaded.get_record('Chess', 'Alice vs Bob')
        self.assertEqual(matchup.participants['Bob'], Record(1, 0))


class TestTallyServiceListAndDelete(TmpDirMixin):

    def test_list_skips_stray_entries(self):
        svc = TallyService(TallyRepository(self._write('tallies.json', STORED)))
        listed = [(g, m) for g, m, _ in svc.list_all()]
        self.assertEqual(listed, [('Chess', 'Alice vs Bob'), ('Valorant', 'Red vs Blue')])

    def test_list_keeps_creation_order(self):
        svc = self._service()
        svc.create_matchup('Zed', 'A', 'B')
        svc.create_matchup('Alpha', 'C', 'D')
        svc.create_matchup('Zed', 'E', 'F')
        listed = [(g, m) for g, m, _ in svc.list_all()]
        self.assertEqual(listed, [('Zed', 'A vs B'), ('Zed', 'E vs F'), ('Alpha', 'C vs D')])

    def test_stray_entries_are_not_matchups(self):
        svc = TallyService(TallyRepository(self._write('tallies.json', STORED)))
        with self.assertRaises(MatchupNotFound):
            svc.get_record('Chess', 'notes')

    def test_delete_last_matchup_removes_game(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        self.assertEqual(svc.delete_matchup('Chess', 'ALICE VS BOB'), 'Alice vs Bob')
        self.assertNotIn('Chess', svc.data)
        self.assertEqual(svc.list_all(), [])

    def test_delete_keeps_other_matchups(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        svc.create_matchup('Chess', 'Carol', 'Dan')
        svc.delete_matchup('Chess', 'Alice vs Bob')
        self.assertEqual([m for _, m, _ in svc.list_all()], ['Carol vs Dan'])

    def test_delete_keeps_game_with_stray_entries(self):
        svc = TallyService(TallyRepository(self._write('tallies.json', STORED)))
        svc.delete_matchup('Chess', 'Alice vs Bob')
        self.assertIn('Chess', svc.data)
        self.assertEqual(svc.snapshot()['Chess'], {'notes': 'not a matchup'})

    def test_delete_errors(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        with self.assertRaises(GameNotFound):
            svc.delete_matchup('Go', 'Alice vs Bob')
        with self.assertRaises(MatchupNotFound):
            svc.delete_matchup('Chess', 'Bob vs Alice')

    def test_delete_persisted(self):
        path = self._path('tallies.json')
        svc = TallyService(TallyRepository(path))
        svc.create_matchup('Chess', 'Alice', 'Bob')
        svc.delete_matchup('Chess', 'Alice vs Bob')
        with open(path) as f:
            self.assertEqual(json.load(f), {})


class TestTallyServiceAggregates(TmpDirMixin):

    def test_chess_scenario(self):
        svc = self._service()
        matchup_id, _ = svc.create_matchup('Chess', 'Alice', 'Bob')
        svc.record_outcome('Chess', matchup_id, 'Bob', Outcome.WIN)
        _, matchup = svc.get_record('Chess', matchup_id)
        self.assertEqual(matchup.participants['Bob'].win_rate, '100.0')
        self.assertEqual(matchup.participants['Alice'].win_rate, '0.0')

        stats = svc.aggregate_participant('bob')
        self.assertEqual((stats.wins, stats.losses), (1, 0))
        self.assertEqual(stats.display_name, 'Bob')
        self.assertEqual(list(stats.games), ['Chess'])
        self.assertEqual(stats.game_totals('Chess'), (1, 0))

        svc.delete_matchup('Chess', matchup_id)
        self.assertNotIn('Chess', [g for g, _, _ in svc.list_all()])

    def test_aggregate_sums_across_games(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        svc.create_matchup('Go', 'bob', 'Carol')
        svc.record_outcome('Chess', 'Alice vs Bob', 'Bob', Outcome.WIN)
        svc.record_outcome('Go', 'bob vs Carol', 'Carol', Outcome.WIN)
        svc.record_outcome('Go', 'bob vs Carol', 'bob', Outcome.WIN)
        stats = svc.aggregate_participant('BOB')
        self.assertEqual((stats.wins, stats.losses), (2, 1))
        self.assertEqual(stats.game_totals('Go'), (1, 1))
        self.assertEqual(stats.display_name, 'Bob')

    def test_unknown_participant_has_no_stats(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        with self.assertRaises(NoStatsFound):
            svc.aggregate_participant('Carol')

    def test_participant_without_games_has_no_stats(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        with self.assertRaises(NoStatsFound):
            svc.aggregate_participant('Alice')

    def test_leaderboard_ties_keep_first_seen_order(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Zoe', 'Carl')
        svc.create_matchup('Go', 'Amy', 'Dan')
        for _ in range(3):
            svc.record_outcome('Chess', 'Zoe vs Carl', 'Carl', Outcome.WIN)
        for _ in range(5):
            svc.record_outcome('Go', 'Amy vs Dan', 'Amy', Outcome.WIN)
            svc.record_outcome('Chess', 'Zoe vs Carl', 'Zoe', Outcome.WIN)
        names = [s.display_name for s in svc.leaderboard()]
        self.assertEqual(names, ['Zoe', 'Amy', 'Carl'])

    def test_leaderboard_groups_case_insensitively(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        svc.create_matchup('Go', 'alice', 'Carol')
        svc.record_outcome('Chess', 'Alice vs Bob', 'Alice', Outcome.WIN)
        svc.record_outcome('Go', 'alice vs Carol', 'alice', Outcome.WIN)
        top = svc.leaderboard(top=1)[0]
        self.assertEqual((top.display_name, top.wins), ('Alice', 2))

    def test_leaderboard_caps_at_top(self):
        svc = self._service()
        svc.create_matchup('Chess', 'A', 'B')
        svc.create_matchup('Go', 'C', 'D')
        self.assertEqual(len(svc.leaderboard()), 3)
        self.assertEqual(len(svc.leaderboard(top=10)), 4)

    def test_empty_leaderboard(self):
        self.assertEqual(self._service().leaderboard(), [])


class TestTallyServiceSnapshotAndAutocomplete(TmpDirMixin):

    def test_snapshot_is_stored_shape(self):
        svc = TallyService(TallyRepository(self._write('tallies.json', STORED)))
        self.assertEqual(svc.snapshot(), STORED)

    def test_snapshot_is_a_copy(self):
        svc = self._service()
        svc.create_matchup('Chess', 'Alice', 'Bob')
        snap = svc.snapshot()
        snap['Chess']['Alice vs Bob']['Alice']['wins'] = 99
        _, matchup = svc.get_record('Chess', 'Alice vs Bob')
        self.assertEqual(matchup.participants['Alice'].wins, 0)

    def test_autocomplete_lists_matchups(self):
        svc = TallyService(TallyRepository(self._write('tallies.json', STORED)))
        self.assertEqual(svc.autocomplete(''), [
            ('Chess - Alice vs Bob', 'Chess|Alice vs Bob'),
            ('Valorant - Red vs Blue', 'Valorant|Red vs Blue'),
        ])

    def test_autocomplete_filters_by_substring(self):
        svc = TallyService(TallyRepository(self._write('tallies.json', STORED)))
        self.assertEqual(svc.autocomplete('RED'), [('Valorant - Red vs Blue', 'Valorant|Red vs Blue')])

    def test_autocomplete_caps_results(self):
        svc = self._service()
        for i in range(30):
            svc.create_matchup('Chess', f'P{i}', f'Q{i}')
        self.assertEqual(len(svc.autocomplete('')), 25)

    def test_autocomplete_skips_values_discord_would_reject(self):
        svc = self._service()
        svc.create_matchup('Chess', 'A' * 60, 'B' * 60)
        svc.create_matchup('Chess', 'Alice', 'Bob')
        self.assertEqual(svc.autocomplete(''), [('Chess - Alice vs Bob', 'Chess|Alice vs Bob')])


# ===========================================================================
# Media picker tests
# ===========================================================================

class TestMediaPicker(TmpDirMixin):

    def _touch(self, *names):
        os.makedirs(self._path('gifs'), exist_ok=True)
        for name in names:
            open(os.path.join(self._path('gifs'), name), 'w').close()

    def test_filters_extensions(self):
        self._touch('a.gif', 'b.MP4', 'c.webm', 'd.png', 'notes.txt')
        picker = MediaPicker(self._path('gifs'))
        self.assertEqual(picker.list_media(), ['a.gif', 'b.MP4', 'c.webm'])

    def test_pick_returns_full_path(self):
        self._touch('only.gif')
        picker = MediaPicker(self._path('gifs'), rng=random.Random(1))
        self.assertEqual(picker.pick_random(), os.path.join(self._path('gifs'), 'only.gif'))

    def test_pick_from_several(self):
        self._touch('a.gif', 'b.gif', 'c.gif')
        picker = MediaPicker(self._path('gifs'), rng=random.Random(7))
        picks = {os.path.basename(picker.pick_random()) for _ in range(50)}
        self.assertTrue(picks <= {'a.gif', 'b.gif', 'c.gif'})
        self.assertGreater(len(picks), 1)

    def test_empty_folder_returns_none(self):
        self._touch('readme.txt')
        self.assertIsNone(MediaPicker(self._path('gifs')).pick_random())

    def test_missing_folder_returns_none(self):
        self.assertIsNone(MediaPicker(self._path('nope')).pick_random())

    def test_ensure_folder_creates_it(self):
        picker = MediaPicker(self._path('gifs'))
        picker.ensure_folder()
        self.assertTrue(os.path.isdir(self._path('gifs')))


if __name__ == '__main__':
    unittest.main()
