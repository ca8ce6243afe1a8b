#!/usr/bin/env python
"""
BSP Volume - Точка входа для CLI

Адаптивная Monte Carlo оценка объёма с уточнением через BSP дерево:
  plot  - оценка площади круга с гистограммой выборок
  stats - смещение и покрытие доверительного интервала на n-мерных шарах
"""
import psutil
import os
import argparse
import json
import logging
import sys
import time
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path, verbose: bool):
    """Настраивает раздельное логирование в файл и консоль."""
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Уровень для файла всегда DEBUG, для консоли - в зависимости от флага --verbose
    console_level = logging.DEBUG if verbose else logging.INFO
    file_level = logging.DEBUG

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Убираем все предыдущие обработчики, чтобы избежать дублирования
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    file_handler = logging.FileHandler(log_path, mode='w', encoding='utf-8')
    file_handler.setLevel(file_level)
    file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)


from bsp_volume import __version__
from bsp_volume.config import EstimatorConfig, HISTOGRAM_SCALE, STATS_STEP_SAMPLES
from bsp_volume.core.estimator import BspMonteCarlo
from bsp_volume.io.exporters import export_cells_json, export_statistics
from bsp_volume.utils.reference import nsphere_volume, summarize_trials, run_trials
from bsp_volume.visualization.tracer import SampleHistogram, TraceRecorder


def parse_arguments(argv=None) -> argparse.Namespace:
    """Парсинг аргументов командной строки"""
    parser = argparse.ArgumentParser(
        description='BSP Volume - Адаптивная Monte Carlo оценка объёма',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
    Примеры использования:
    %(prog)s plot --radius 10 --max-samples 10000000 --tol-rel 0
    %(prog)s stats --max-dim 10 --trials 1000 --step-samples 10000
            """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    # Общие параметры
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--output', '-o', default='output', type=str,
                        help='Выходная директория (по умолчанию: output)')
    common.add_argument('--seed', type=int,
                        help='Seed генератора (по умолчанию: из энтропии ОС)')

    group_budget = common.add_argument_group('Бюджет выборок')
    group_budget.add_argument('--step-samples', type=int,
                              help='Выборок на одну порцию (по умолчанию: 1000, stats: 10000)')
    group_budget.add_argument('--max-samples', type=int,
                              help='Общий бюджет выборок (по умолчанию: 1000000)')
    group_budget.add_argument('--vectorized', action='store_true',
                              help='Вызывать предикат порциями (n x dim)')

    group_tol = common.add_argument_group('Критерий остановки')
    tol = group_tol.add_mutually_exclusive_group()
    tol.add_argument('--tol-abs', type=float,
                     help='Абсолютный порог полуширины ci95')
    tol.add_argument('--tol-rel', type=float,
                     help='Относительный порог полуширины ci95 (по умолчанию: 0.01)')

    group_debug = common.add_argument_group('Отладка')
    group_debug.add_argument('--verbose', '-v', action='store_true',
                             help='Подробный вывод')
    group_debug.add_argument('--config', type=str,
                             help='Путь к файлу конфигурации JSON')
    group_debug.add_argument('--save-config', type=str,
                             help='Сохранить текущую конфигурацию в файл')

    subparsers = parser.add_subparsers(dest='command', required=True)

    # plot
    plot = subparsers.add_parser('plot', parents=[common],
                                 help='Оценка площади круга и гистограмма выборок')
    plot.add_argument('--radius', type=float, default=10.0,
                      help='Радиус круга (по умолчанию: 10.0)')
    plot.add_argument('--half-width', type=float, default=10.5,
                      help='Полуширина квадрата выборок (по умолчанию: 10.5)')
    plot.add_argument('--scale', type=float, default=HISTOGRAM_SCALE,
                      help='Бинов гистограммы на единицу длины (по умолчанию: 100)')
    plot.add_argument('--cells-json', action='store_true',
                      help='Сохранить ячейки BSP дерева в JSON')
    plot.add_argument('--trace-json', action='store_true',
                      help='Сохранить JSON трассировку разбиений')
    plot.add_argument('--stats-csv', action='store_true',
                      help='Сохранить CSV файл со статистикой по каждому разбиению')
    plot.add_argument('--stats', action='store_true',
                      help='Экспортировать статистику оценки')

    # stats
    stats = subparsers.add_parser('stats', parents=[common],
                                  help='Смещение и покрытие на n-мерных шарах')
    stats.add_argument('--max-dim', type=int, default=10,
                       help='Максимальная размерность (по умолчанию: 10)')
    stats.add_argument('--trials', type=int, default=1000,
                       help='Число независимых запусков на размерность (по умолчанию: 1000)')
    stats.add_argument('--radius', type=float, default=1.0,
                       help='Радиус шара (по умолчанию: 1.0)')
    stats.add_argument('--margin', type=float, default=1.1,
                       help='Полуширина куба в радиусах (по умолчанию: 1.1)')
    stats.add_argument('--report', action='store_true',
                       help='Сохранить сводку в JSON')

    return parser.parse_args(argv)


def build_config(args) -> EstimatorConfig:
    """Конфигурация из файла и аргументов командной строки"""
    base = None
    if args.config:
        logger.info(f"Loading config from {args.config}")
        base = EstimatorConfig.load(Path(args.config))
    elif args.command == 'stats' and args.step_samples is None:
        # stats по умолчанию использует более крупные порции
        args.step_samples = STATS_STEP_SAMPLES

    config = EstimatorConfig.from_args(args, base)
    if args.vectorized:
        config.vectorized = True
    config.validate()

    if args.save_config:
        config.save(Path(args.save_config))
        logger.info(f"Config saved to {args.save_config}")

    return config


def run_plot(args, config: EstimatorConfig, output_dir: Path, process) -> int:
    """Оценка площади круга с записью гистограммы выборок"""
    r = args.radius

    def in_disc(x, y):
        return np.sqrt(x * x + y * y) <= r

    if config.vectorized:
        def predicate(points):
            return in_disc(points[:, 0], points[:, 1])
    else:
        def predicate(point):
            return bool(in_disc(point[0], point[1]))

    histogram = SampleHistogram(scale=args.scale)
    trace = None
    if config.trace_enabled:
        trace = TraceRecorder()
        logger.info("Trace/Stats recorder enabled")
    if args.stats_csv:
        trace.start_stats_recording(output_dir / 'split_statistics.csv')

    mc = BspMonteCarlo(np.random.default_rng(config.random_seed), config, trace)
    lower = [-args.half_width] * 2
    upper = [args.half_width] * 2

    cpu_time_before = process.cpu_times()
    try:
        est, ci = mc.estimate_volume(histogram.wrap(predicate, config.vectorized), lower, upper)
    finally:
        if trace:
            trace.close()
    cpu_time_after = process.cpu_times()
    cpu_time_sec = (cpu_time_after.user - cpu_time_before.user) + (cpu_time_after.system - cpu_time_before.system)
    peak_memory_mb = process.memory_info().rss / (1024 * 1024)

    print(f"{est:.3f}(+/-){ci:.3f}")

    tree_stats = mc.root.get_stats()
    logger.info(
        f"Estimate built in {mc.stats['build_time']:.2f}s ({mc.stats['terminal_state']}): "
        f"{tree_stats['node_count']} cells, "
        f"{tree_stats['leaf_count']} leaves, "
        f"depth={tree_stats['depth']}"
    )

    histogram_file = output_dir / 'histogram.json'
    histogram.dump(histogram_file, membership=in_disc)
    print(f"> {histogram_file}")

    if args.cells_json:
        export_cells_json(mc.root, output_dir / 'cells.json')

    if args.trace_json and trace:
        trace.record_result(est, ci, mc.stats)
        trace.dump(output_dir / 'trace.json')

    if trace:
        logger.info(f"Trace summary: {trace.get_summary()}")

    if args.stats:
        export_statistics(
            mc.root, output_dir / 'statistics.json', (est, ci),
            mc.stats['build_time'], peak_memory_mb, cpu_time_sec, config
        )

    return 0


def run_stats(args, config: EstimatorConfig, output_dir: Path) -> int:
    """Повторные оценки объёма шаров размерности 1..max_dim"""
    if args.max_dim < 1 or args.trials < 1:
        raise ValueError("--max-dim and --trials must be >= 1")

    seeds = np.random.SeedSequence(config.random_seed).spawn(args.max_dim)
    report = []

    for dim, seed in zip(range(1, args.max_dim + 1), seeds):
        print(f"[{dim}-sphere]")
        true_value = nsphere_volume(args.radius, dim)

        start_time = time.perf_counter()
        results = run_trials(dim, args.trials, config,
                             radius=args.radius, margin=args.margin, seed=seed)
        elapsed = time.perf_counter() - start_time

        summary = summarize_trials(results, true_value)
        summary['dim'] = dim
        summary['elapsed_sec'] = elapsed
        report.append(summary)

        print(f"true = {summary['true']:9.3f}")
        print(f"rms  = {summary['rms']:9.3f}")
        print(f"ci   = {summary['mean_ci']:9.3f}")
        print(f"acc  = {summary['coverage'] * 100.0:9.3f}%")
        logger.debug(f"{dim}D: {args.trials} trials in {elapsed:.2f}s")

    if args.report:
        report_file = output_dir / 'stats_report.json'
        with open(report_file, 'w', encoding='utf-8') as f:
            json.dump(report, f, ensure_ascii=False, indent=2)
        logger.info(f"Report saved to {report_file}")

    return 0


def main(argv=None):
    """Основная функция"""
    args = parse_arguments(argv)
    output_dir = Path(args.output)
    log_file_path = output_dir / 'run_log.txt'
    setup_logging(log_file_path, args.verbose)
    logger.info(f"Detailed logs are being saved to {log_file_path}")
    process = psutil.Process(os.getpid())
    try:
        config = build_config(args)
        output_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            f"Running '{args.command}': tol={config.tolerance}, "
            f"step={config.step_samples}, budget={config.max_samples}"
        )

        if args.command == 'plot':
            return run_plot(args, config, output_dir, process)
        return run_stats(args, config, output_dir)

    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 130

    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        return 1

    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 2

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 255


if __name__ == '__main__':
    sys.exit(main())
