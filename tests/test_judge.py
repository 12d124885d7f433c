# -*- coding: utf-8 -*-
import threading

from bestest import judge
from bestest.diff import HunkKind
from bestest.judgeconfig import Config, TestCase
from bestest.pool import WorkerPool

ADD = 'a = int(input())\nb = int(input())\nprint(a + b)\n'
ADD_WRONG = 'a = int(input())\nb = int(input())\nprint(a + b + 1)\n'
FOREVER = 'while True:\n    pass\n'

SUM_CASE = TestCase(input='3\n4\n', expected='7\n', points=10)


def test_correct_scores_points(make_workspace, python_langs):
    config = Config(testcases=[SUM_CASE])
    result = judge.judge_workspace(make_workspace('alice', {'main.py': ADD}), config, python_langs)
    assert len(result.outcomes) == 1
    assert isinstance(result.outcomes[0], judge.Correct)
    assert result.outcomes[0].output == '7\n'
    assert result.points == 10
    assert result.max_points == 10
    assert result.passed() == 1


def test_wrong_answer(make_workspace, python_langs):
    config = Config(testcases=[SUM_CASE])
    result = judge.judge_workspace(make_workspace('bob', {'main.py': ADD_WRONG}), config, python_langs)
    outcome = result.outcomes[0]
    assert isinstance(outcome, judge.Wrong)
    assert outcome.output == '8\n'
    assert len(outcome.diff.hunks) == 1
    assert outcome.diff.hunks[0].kind is HunkKind.REPLACEMENT
    assert result.points == 0


def test_timeout_is_error_and_next_case_runs(make_workspace, python_langs):
    script = 'line = input()\nif line == "hang":\n' + '    while True:\n        pass\nprint(line)\n'
    config = Config(timeout_ms=300, testcases=[
        TestCase(input='hang\n', expected='hang\n', points=1),
        TestCase(input='ok\n', expected='ok\n', points=2),
    ])
    result = judge.judge_workspace(make_workspace('carol', {'main.py': script}), config, python_langs)
    first, second = result.outcomes
    assert first == judge.Error(9, 'Timed out.')
    assert first.verdict == 'TLE'
    assert isinstance(second, judge.Correct)
    assert result.points == 2


def test_never_terminating(make_workspace, python_langs):
    config = Config(timeout_ms=200, testcases=[SUM_CASE, SUM_CASE])
    result = judge.judge_workspace(make_workspace('dave', {'main.py': FOREVER}), config, python_langs)
    assert result.outcomes == [judge.Error(9, judge.TIMED_OUT)] * 2
    assert result.points == 0


def test_large_unread_input_still_times_out(make_workspace, python_langs):
    config = Config(timeout_ms=300, testcases=[TestCase(input='x' * (1 << 20), expected='', points=1)])
    workspace = make_workspace('frank', {'main.py': FOREVER})
    results = []
    worker = threading.Thread(target=lambda: results.append(judge.judge_workspace(workspace, config, python_langs)),
                              daemon=True)
    worker.start()
    worker.join(30)
    assert not worker.is_alive()
    assert results[0].outcomes == [judge.Error(9, judge.TIMED_OUT)]


def test_nonzero_exit_is_judged_by_output(make_workspace, python_langs):
    script = ADD + 'raise SystemExit(4)\n'
    config = Config(testcases=[SUM_CASE])
    result = judge.judge_workspace(make_workspace('erin', {'main.py': script}), config, python_langs)
    assert isinstance(result.outcomes[0], judge.Correct)


def test_unresolvable_workspace(make_workspace, python_langs):
    config = Config(testcases=[SUM_CASE, SUM_CASE])
    result = judge.judge_workspace(make_workspace('frank', {'a.py': ADD, 'b.py': ADD}), config, python_langs)
    assert [o.code for o in result.outcomes] == [-1, -1]
    assert all('ambiguous' in o.reason for o in result.outcomes)


def test_compile_error_fails_every_case(make_workspace, checked_python):
    config = Config(testcases=[SUM_CASE, SUM_CASE, SUM_CASE])
    result = judge.judge_workspace(make_workspace('gina', {'main.py': 'def broken(:\n'}), config, checked_python)
    assert len(result.outcomes) == 3
    assert all(isinstance(o, judge.Error) and o.code == 1 for o in result.outcomes)
    assert 'SyntaxError' in result.outcomes[0].reason


def test_missing_dependency(make_workspace, python_langs, tmp_path):
    config = Config(testcases=[SUM_CASE], dependencies=[tmp_path / 'nope.py'])
    result = judge.judge_workspace(make_workspace('hank', {'main.py': ADD}), config, python_langs)
    assert isinstance(result.outcomes[0], judge.Error)
    assert result.outcomes[0].code == -1


def test_dependencies_copied(make_workspace, python_langs, tmp_path):
    dep = tmp_path / 'deps' / 'helper.py'
    dep.parent.mkdir()
    dep.write_text('def add(a, b):\n    return a + b\n')
    script = 'from helper import add\nprint(add(int(input()), int(input())))\n'
    config = Config(testcases=[SUM_CASE], dependencies=[dep])
    result = judge.judge_workspace(make_workspace('ivy', {'main.py': script}), config, python_langs)
    assert isinstance(result.outcomes[0], judge.Correct)


def test_judge_all_preserves_order_and_bounds(make_workspace, python_langs):
    config = Config(threads=2, testcases=[SUM_CASE])
    workspaces = [make_workspace(f'student{i}', {'main.py': ADD if i % 2 else ADD_WRONG}) for i in range(5)]
    pool = WorkerPool(config.threads)
    results = judge.judge_all(workspaces, config, python_langs, pool)
    assert [r.workspace for r in results] == workspaces
    assert [r.points for r in results] == [0, 10, 0, 10, 0]
    assert pool.peak <= 2
