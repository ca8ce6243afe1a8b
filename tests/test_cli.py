import json

import pytest

from bsp_volume.config import EstimatorConfig, DEFAULT_STEP_SAMPLES, STATS_STEP_SAMPLES
from main import main, parse_arguments, build_config


def test_plot_writes_outputs(tmp_path, restore_logging, capsys):
    code = main(['plot', '--output', str(tmp_path), '--seed', '1',
                 '--step-samples', '200', '--max-samples', '2000', '--tol-abs', '0',
                 '--radius', '1', '--half-width', '1.1', '--scale', '5',
                 '--cells-json', '--trace-json', '--stats-csv', '--stats'])

    assert code == 0
    out = capsys.readouterr().out
    assert '(+/-)' in out
    for name in ('histogram.json', 'cells.json', 'trace.json',
                 'split_statistics.csv', 'statistics.json', 'run_log.txt'):
        assert (tmp_path / name).exists(), name

    hist = json.loads((tmp_path / 'histogram.json').read_text(encoding='utf-8'))
    assert hist['total_samples'] == 2000
    trace = json.loads((tmp_path / 'trace.json').read_text(encoding='utf-8'))
    assert [s['axis'] for s in trace['splits']] == [i % 2 for i in range(9)]
    log_text = (tmp_path / 'run_log.txt').read_text(encoding='utf-8')
    assert "Trace summary: {'n_splits': 9" in log_text


def test_plot_vectorized(tmp_path, restore_logging):
    code = main(['plot', '--output', str(tmp_path), '--seed', '2', '--vectorized',
                 '--max-samples', '3000', '--radius', '1', '--half-width', '1.1',
                 '--scale', '5'])
    assert code == 0
    assert (tmp_path / 'histogram.json').exists()


def test_stats_report(tmp_path, restore_logging, capsys):
    code = main(['stats', '--output', str(tmp_path), '--seed', '3',
                 '--max-dim', '2', '--trials', '3', '--step-samples', '200',
                 '--max-samples', '1000', '--report'])

    assert code == 0
    out = capsys.readouterr().out
    assert '[1-sphere]' in out and '[2-sphere]' in out
    report = json.loads((tmp_path / 'stats_report.json').read_text(encoding='utf-8'))
    assert [r['dim'] for r in report] == [1, 2]
    assert all(r['trials'] == 3 for r in report)


def test_save_and_reuse_config(tmp_path, restore_logging):
    config_path = tmp_path / 'config.json'
    code = main(['stats', '--output', str(tmp_path), '--max-dim', '1', '--trials', '1',
                 '--step-samples', '300', '--max-samples', '600',
                 '--save-config', str(config_path)])
    assert code == 0

    saved = json.loads(config_path.read_text(encoding='utf-8'))
    assert saved['step_samples'] == 300
    code = main(['stats', '--output', str(tmp_path), '--max-dim', '1', '--trials', '1',
                 '--config', str(config_path)])
    assert code == 0



def test_stats_step_samples_default(tmp_path):
    config = build_config(parse_arguments(['stats', '--output', str(tmp_path)]))
    assert config.step_samples == STATS_STEP_SAMPLES

    config = build_config(parse_arguments(['stats', '--step-samples', '500']))
    assert config.step_samples == 500

    config = build_config(parse_arguments(['plot']))
    assert config.step_samples == DEFAULT_STEP_SAMPLES


def test_stats_keeps_step_samples_from_config_file(tmp_path):
    config_path = tmp_path / 'config.json'
    EstimatorConfig(step_samples=300, max_samples=600).save(config_path)

    config = build_config(parse_arguments(['stats', '--config', str(config_path)]))
    assert config.step_samples == 300

@pytest.mark.parametrize("argv, expected", [
    (['plot', '--step-samples', '1'], 2),
    (['stats', '--trials', '0'], 2),
    (['stats', '--config', 'missing-config.json'], 1),
])
def test_error_exit_codes(tmp_path, restore_logging, argv, expected):
    assert main(argv + ['--output', str(tmp_path)]) == expected
