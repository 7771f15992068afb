import unittest

from lr0_parser import (
    ParseTreeNode,
    build_lr0_automaton,
    build_lr0_parse_table,
    grammar_from_text,
    run_lr_parse,
)
from visualization import (
    DOTGenerator,
    ErrorMessageFormatter,
    HTMLTableGenerator,
    ParseTraceFormatter,
    VisualizationConfig,
)


def pipeline_for(text):
    automaton = build_lr0_automaton(grammar_from_text(text)).automaton
    return automaton, build_lr0_parse_table(automaton)


class TableHtmlTests(unittest.TestCase):
    def test_columns_and_cells(self) -> None:
        automaton, table = pipeline_for("S -> a S | b")
        rendered = HTMLTableGenerator().generate_action_goto_tables_html(table, automaton.grammar)

        self.assertIn('>ACTION</th>', rendered)
        self.assertIn('colspan="3">ACTION', rendered)
        self.assertIn('colspan="1">GOTO', rendered)
        self.assertNotIn("S&#x27;", rendered)
        self.assertIn('<span class="grammar-action-accept">accept</span>', rendered)
        self.assertIn('<span class="grammar-action-shift">shift 2</span>', rendered)
        self.assertNotIn('grammar-action-conflict', rendered)
        # End marker is the last terminal column
        self.assertLess(rendered.index('scope="col">b</th>'), rendered.index('scope="col">$</th>'))

    def test_conflicting_cells_are_marked(self) -> None:
        automaton, table = pipeline_for("S -> A | B\nA -> x\nB -> x")
        rendered = HTMLTableGenerator().generate_action_goto_tables_html(table, automaton.grammar)

        self.assertEqual(rendered.count('grammar-action-conflict'), 2)
        self.assertIn('title="rejected: reduce 4"', rendered)


class DotTests(unittest.TestCase):
    def test_automaton_graph(self) -> None:
        automaton, _ = pipeline_for("S -> a S | b")
        dot = DOTGenerator().generate_automaton_dot(automaton)

        self.assertTrue(dot.startswith('digraph "LR(0) Automaton" {'))
        self.assertIn('state0 -> state2 [label="a"];', dot)
        self.assertIn('state2 -> state4 [label="S"];', dot)
        self.assertIn('peripheries=2', dot)
        self.assertEqual(dot.count('peripheries=2'), 1)
        self.assertIn('style=bold', dot)
        self.assertIn('S -> a • S', dot)

    def test_compact_labels(self) -> None:
        automaton, _ = pipeline_for("S -> a S | b")
        dot = DOTGenerator(VisualizationConfig(compact_mode=True)).generate_automaton_dot(automaton)
        self.assertIn('state3 [label="3"];', dot)

    def test_parse_tree_graph(self) -> None:
        tree = ParseTreeNode("S", [ParseTreeNode("a", is_terminal=True), ParseTreeNode("S")])
        dot = DOTGenerator().generate_parse_tree_dot(tree, 'Tree for "a"')

        self.assertIn('digraph "Tree for \\"a\\""', dot)
        self.assertIn('node0 [label="S"', dot)
        self.assertIn('node1 [label="a", shape=box', dot)
        self.assertIn('node3 [label="ε", shape=plaintext];', dot)
        self.assertIn('node2 -> node3;', dot)
        self.assertIn('node0 -> node2;', dot)

    def test_empty_tree(self) -> None:
        dot = DOTGenerator().generate_parse_tree_dot(None)
        self.assertIn('Parse tree is empty', dot)


class TraceHtmlTests(unittest.TestCase):
    def test_rows_are_classified(self) -> None:
        automaton, table = pipeline_for("S -> a S | b")
        result = run_lr_parse(table, automaton, ["a", "a"])
        rendered = ParseTraceFormatter().generate_trace_html(result.trace)

        self.assertEqual(rendered.count('<tr class="shift-step">'), 2)
        self.assertEqual(rendered.count('<tr class="error-step">'), 1)
        self.assertIn("Error: Unexpected token &#x27;$&#x27;", rendered)

    def test_accepting_run(self) -> None:
        automaton, table = pipeline_for("S -> a S | b")
        result = run_lr_parse(table, automaton, ["b"])
        rendered = ParseTraceFormatter().generate_trace_html(result.trace)

        self.assertIn('<tr class="reduce-step">', rendered)
        self.assertIn('<tr class="accept-step">', rendered)
        self.assertIn('S -&gt; b', rendered)

    def test_empty_trace(self) -> None:
        rendered = ParseTraceFormatter().generate_trace_html([])
        self.assertIn('No parsing steps recorded', rendered)


class ErrorFormattingTests(unittest.TestCase):
    def test_conflict_report(self) -> None:
        _, table = pipeline_for("S -> A | B\nA -> x\nB -> x")
        rendered = ErrorMessageFormatter().format_conflict_report(table.conflicts)

        self.assertIn('Grammar Conflicts (2 found)', rendered)
        self.assertIn('reduce/reduce', rendered)
        self.assertIn('<code>B -&gt; x •</code>', rendered)

    def test_no_conflicts(self) -> None:
        rendered = ErrorMessageFormatter().format_conflict_report([])
        self.assertIn('no-conflicts', rendered)

    def test_grammar_errors(self) -> None:
        formatter = ErrorMessageFormatter(VisualizationConfig(include_inline_styles=False))
        rendered = formatter.format_grammar_errors([
            {'rowId': 'r1', 'message': 'LHS cannot be empty'},
            {'rowId': None, 'message': 'Grammar has no productions'},
        ])

        self.assertNotIn('<style>', rendered)
        self.assertIn('<li class="error-item">Row r1: LHS cannot be empty</li>', rendered)
        self.assertIn('<li class="error-item">Grammar has no productions</li>', rendered)

    def test_parse_error(self) -> None:
        rendered = ErrorMessageFormatter().format_parse_error("Unexpected token '<x>'", "Parse Error")
        self.assertIn('<h4>Parse Error</h4>', rendered)
        self.assertIn('&lt;x&gt;', rendered)


if __name__ == '__main__':
    unittest.main()
