"""Tests for the switching_planner command line entry point."""

import matplotlib
matplotlib.use('Agg')

import io
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

from switching_planner import build_parser, main

GRID_DIR = Path(__file__).parent.parent / 'grids' / 'Substation'

FAST_FLAGS = [
    '--switch-resistance', '1.0',
    '--bus-capacitance', '1e-3',
    '--max-iterations', '500',
]


def run_main(argv):
    """Run main() and return (exit code, captured stdout)."""
    captured = io.StringIO()
    old_stdout = sys.stdout
    sys.stdout = captured
    try:
        code = main(argv)
    finally:
        sys.stdout = old_stdout
    return code, captured.getvalue()


class TestParser(unittest.TestCase):

    def test_defaults(self):
        args = build_parser().parse_args(['--grid', 'g', '--outage', 'Cir1'])
        self.assertEqual(args.outage, ['Cir1'])
        self.assertEqual(args.mode, 'generate')
        self.assertEqual(args.method, 'dop853')
        self.assertEqual(args.heuristic_scale, 10.0)
        self.assertIsNone(args.max_iterations)
        self.assertFalse(args.no_prune)

    def test_outage_required(self):
        with self.assertRaises(SystemExit):
            build_parser().parse_args(['--grid', 'g'])


class TestMain(unittest.TestCase):
    """End-to-end runs on the sample substation grid."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_generate_line_outage(self):
        code, out = run_main(['--grid', str(GRID_DIR), '--outage', 'Cir1'] + FAST_FLAGS)
        self.assertEqual(code, 0)
        self.assertIn('Status: accepted', out)
        self.assertIn('Remaining distance to target: 0', out)
        self.assertIn('Switching Sequence Planner Complete!', out)

    def test_evaluate_mode(self):
        code, out = run_main(['--grid', str(GRID_DIR), '--outage', 'Cir1',
                              '--mode', 'evaluate'] + FAST_FLAGS)
        self.assertEqual(code, 0)
        self.assertIn('evaluate mode', out)
        self.assertIn('Status: accepted', out)

    def test_iteration_budget(self):
        code, out = run_main(['--grid', str(GRID_DIR), '--outage', 'Cir1',
                              '--switch-resistance', '1.0', '--bus-capacitance', '1e-3',
                              '--max-iterations', '1'])
        self.assertEqual(code, 1)
        self.assertIn('Status: budget_exhausted', out)
        self.assertIn('No acceptable sequence found.', out)

    def test_plot_transient(self):
        plot_path = Path(self.temp_dir) / 'transient.png'
        code, out = run_main(['--grid', str(GRID_DIR), '--outage', 'Cir1',
                              '--plot-transient', str(plot_path)] + FAST_FLAGS)
        self.assertEqual(code, 0)
        self.assertIn('[5] Plotting first switching transient', out)
        # The first step may be a de-energized switch with no waveform
        if 'Saved:' in out:
            self.assertTrue(plot_path.exists())

    def test_unknown_equipment(self):
        code, out = run_main(['--grid', str(GRID_DIR), '--outage', 'Cir99'])
        self.assertEqual(code, 2)
        self.assertIn('Cir99', out)

    def test_missing_grid(self):
        code, out = run_main(['--grid', str(Path(self.temp_dir) / 'nowhere'),
                              '--outage', 'Cir1'])
        self.assertEqual(code, 2)
        self.assertIn('Cannot find file', out)


if __name__ == '__main__':
    unittest.main()
