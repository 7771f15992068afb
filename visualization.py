"""
Visualization and Output Formatting Module

This module provides visualization and formatting capabilities for the LR(0)
parser, including HTML table generation, DOT format output for the automaton
and parse tree, and parsing trace formatting.
"""

from typing import Dict, List, Tuple, Optional, Iterable
from dataclasses import dataclass
import html

from lr0_parser import (
    ActionType,
    AugmentedGrammar,
    Conflict,
    END_MARKER,
    LR0Automaton,
    LR0ParseTable,
    LR0State,
    ParseAction,
    ParseStep,
    ParseTreeNode,
)


@dataclass
class VisualizationConfig:
    """Configuration options for visualization output."""
    table_css_classes: str = "parse-table"
    trace_css_classes: str = "parsing-trace"
    error_css_classes: str = "error-message"
    include_inline_styles: bool = True
    compact_mode: bool = False
    max_items_per_state: int = 8  # Item lines shown in a DOT state label


class HTMLTableGenerator:
    """Generates HTML tables for LR(0) parsing tables."""

    def __init__(self, config: Optional[VisualizationConfig] = None):
        self.config = config or VisualizationConfig()

    def generate_action_goto_tables_html(self, table: LR0ParseTable, grammar: AugmentedGrammar) -> str:
        """
        Generate combined HTML table for ACTION and GOTO tables.

        Args:
            table: The parse table
            grammar: Augmented grammar supplying the symbol columns

        Returns:
            HTML string containing the combined parsing table
        """
        all_states = {state for (state, _) in table.action_table}
        all_states.update(state for (state, _) in table.goto_table)

        if not all_states:
            return self._generate_empty_table_html("No parsing states found")

        # Terminals sorted with the end marker last; S' never has a GOTO column
        sorted_terminals = [t for t in sorted(grammar.terminals) if t != END_MARKER] + [END_MARKER]
        sorted_non_terminals = sorted(grammar.non_terminals - {grammar.start_prime})
        conflict_cells = self._conflict_cells(table.conflicts)

        html_lines = []
        html_lines.append(f'<table class="grammar-table {self.config.table_css_classes}" role="table" '
                          f'aria-label="LR(0) Parsing Table with ACTION and GOTO sections">')
        html_lines.append(self._generate_table_header(sorted_terminals, sorted_non_terminals))

        html_lines.append('<tbody>')
        for state in sorted(all_states):
            html_lines.append(self._generate_table_row(
                state, sorted_terminals, sorted_non_terminals, table, conflict_cells
            ))
        html_lines.append('</tbody>')

        html_lines.append('</table>')

        return '\n'.join(html_lines)

    def _generate_table_header(self, terminals: List[str], non_terminals: List[str]) -> str:
        """Generate the table header with ACTION and GOTO sections."""
        lines = []
        lines.append('<thead>')

        lines.append('<tr>')
        lines.append('<th class="grammar-table-header grammar-table-header-primary" scope="col" rowspan="2">State</th>')
        if terminals:
            lines.append(f'<th class="grammar-table-header" scope="colgroup" colspan="{len(terminals)}">ACTION</th>')
        if non_terminals:
            lines.append(f'<th class="grammar-table-header" scope="colgroup" colspan="{len(non_terminals)}">GOTO</th>')
        lines.append('</tr>')

        lines.append('<tr>')
        for symbol in terminals + non_terminals:
            lines.append(f'<th class="grammar-table-header" scope="col">{html.escape(symbol)}</th>')
        lines.append('</tr>')

        lines.append('</thead>')
        return '\n'.join(lines)

    def _generate_table_row(self, state: int, terminals: List[str], non_terminals: List[str],
                            table: LR0ParseTable,
                            conflict_cells: Dict[Tuple[int, str], List[Conflict]]) -> str:
        """Generate a single table row for the given state."""
        lines = []
        lines.append('<tr>')
        lines.append(f'<th class="grammar-table-cell grammar-table-cell-primary" scope="row">{state}</th>')

        for term in terminals:
            action = table.action(state, term)
            conflicts = conflict_cells.get((state, term))
            if conflicts:
                rejected = ' / '.join(html.escape(str(c.incoming)) for c in conflicts)
                lines.append(f'<td class="grammar-table-cell grammar-action-conflict" '
                             f'title="rejected: {rejected}">{self._format_action(action)}'
                             f'<span class="conflict-action"> / {rejected}</span></td>')
            else:
                lines.append(f'<td class="grammar-table-cell">{self._format_action(action)}</td>')

        for non_term in non_terminals:
            target_state = table.goto(state, non_term)
            lines.append(f'<td class="grammar-table-cell">{"" if target_state is None else target_state}</td>')

        lines.append('</tr>')
        return '\n'.join(lines)

    def _format_action(self, action: Optional[ParseAction]) -> str:
        """Format an action for HTML display."""
        if action is None:
            return ''

        text = html.escape(str(action))
        if action.action_type == ActionType.SHIFT:
            return f'<span class="grammar-action-shift">{text}</span>'
        elif action.action_type == ActionType.REDUCE:
            return f'<span class="grammar-action-reduce">{text}</span>'
        return f'<span class="grammar-action-accept">{text}</span>'

    @staticmethod
    def _conflict_cells(conflicts: Iterable[Conflict]) -> Dict[Tuple[int, str], List[Conflict]]:
        cells: Dict[Tuple[int, str], List[Conflict]] = {}
        for conflict in conflicts:
            cells.setdefault((conflict.state_id, conflict.symbol), []).append(conflict)
        return cells

    def _generate_empty_table_html(self, message: str) -> str:
        """Generate HTML for an empty table with a message."""
        html_lines = []
        html_lines.append(f'<div class="{self.config.error_css_classes}">')
        html_lines.append(f'<p>{html.escape(message)}</p>')
        html_lines.append('</div>')
        return '\n'.join(html_lines)


class DOTGenerator:
    """Generates DOT format output for the automaton and parse trees."""

    def __init__(self, config: Optional[VisualizationConfig] = None):
        self.config = config or VisualizationConfig()
        self.node_counter = 0

    def generate_parse_tree_dot(self, parse_tree: Optional[ParseTreeNode], title: str = "Parse Tree") -> str:
        """
        Generate compact DOT format representation of a parse tree.

        Args:
            parse_tree: ParseTreeNode object representing the root of the tree
            title: Title for the graph

        Returns:
            DOT format string
        """
        if not parse_tree:
            return self._generate_empty_tree_dot(title, "Parse tree is empty")

        self.node_counter = 0
        lines = []

        lines.append(f'digraph "{self._escape_dot_string(title)}" {{')
        lines.append('  rankdir=TB;')
        lines.append('  node [fontname="Arial", fontsize=12];')
        lines.append('  edge [fontsize=9, color="#333333"];')
        lines.append('  bgcolor=white;')
        lines.append('  nodesep=0.4;')
        lines.append('  ranksep=0.6;')
        lines.append(self._generate_node_dot(parse_tree))
        lines.append('}')

        return '\n'.join(lines)

    def generate_automaton_dot(self, automaton: LR0Automaton, title: str = "LR(0) Automaton") -> str:
        """
        Generate DOT format representation of an LR(0) automaton.

        Accepting states are drawn with a double border and the start state
        in bold.

        Args:
            automaton: LR0Automaton object
            title: Title for the graph

        Returns:
            DOT format string
        """
        accepting = set(automaton.accepting_states())
        lines = []

        lines.append(f'digraph "{self._escape_dot_string(title)}" {{')
        lines.append('  rankdir=LR;')
        lines.append('  node [shape=box, fontname="Courier", fontsize=9];')
        lines.append('  edge [fontname="Arial", fontsize=9];')

        for state in automaton.states:
            attributes = [f'label="{self._format_state_label(state, automaton.grammar)}"']
            if state.state_id in accepting:
                attributes.append('peripheries=2')
            if state.state_id == automaton.start_state_id:
                attributes.append('style=bold')
            lines.append(f'  state{state.state_id} [{", ".join(attributes)}];')

        for transition in automaton.transitions:
            escaped_symbol = self._escape_dot_string(transition.symbol)
            lines.append(f'  state{transition.from_id} -> state{transition.to_id} [label="{escaped_symbol}"];')

        lines.append('}')

        return '\n'.join(lines)

    def _generate_node_dot(self, node: ParseTreeNode) -> str:
        """Generate DOT lines for a single node and its subtree."""
        lines = []
        current_id = self.node_counter
        self.node_counter += 1

        escaped_label = self._escape_dot_string(node.label)
        if node.is_terminal:
            lines.append(f'  node{current_id} [label="{escaped_label}", shape=box, style=filled, '
                         f'fillcolor="#e3f2fd", color="#1976d2", fontname="Courier New"];')
        else:
            lines.append(f'  node{current_id} [label="{escaped_label}", shape=ellipse, style=filled, '
                         f'fillcolor="#e8f5e8", color="#388e3c"];')

        if not node.children and not node.is_terminal:
            # Epsilon reduction
            epsilon_id = self.node_counter
            self.node_counter += 1
            lines.append(f'  node{epsilon_id} [label="ε", shape=plaintext];')
            lines.append(f'  node{current_id} -> node{epsilon_id};')

        for child in node.children:
            child_id = self.node_counter
            lines.append(self._generate_node_dot(child))
            lines.append(f'  node{current_id} -> node{child_id};')

        return '\n'.join(lines)

    def _format_state_label(self, state: LR0State, grammar: AugmentedGrammar) -> str:
        """Format an LR(0) state for DOT display."""
        if self.config.compact_mode:
            return str(state.state_id)

        items_text = []
        for i, item in enumerate(state.items):
            if i >= self.config.max_items_per_state:
                items_text.append("...")
                break
            items_text.append(grammar.format_item(item))

        label = f"State {state.state_id}\n" + "\n".join(items_text)
        return self._escape_dot_string(label)

    def _generate_empty_tree_dot(self, title: str, message: str) -> str:
        """Generate DOT for an empty or error tree."""
        lines = []
        lines.append(f'digraph "{self._escape_dot_string(title)}" {{')
        lines.append('  rankdir=TB;')
        lines.append('  node [fontname="Arial"];')
        lines.append(f'  empty [label="{self._escape_dot_string(message)}", shape=box, color=red];')
        lines.append('}')
        return '\n'.join(lines)

    def _escape_dot_string(self, text: str) -> str:
        """Escape a string for use in DOT format."""
        if not text:
            return ""

        text = str(text)
        text = text.replace('\\', '\\\\')
        text = text.replace('"', '\\"')
        text = text.replace('\n', '\\n')
        text = text.replace('\t', '\\t')
        text = text.replace('\r', '\\r')

        return text


class ParseTraceFormatter:
    """Formats parsing traces as HTML with step-by-step details."""

    def __init__(self, config: Optional[VisualizationConfig] = None):
        self.config = config or VisualizationConfig()

    def generate_trace_html(self, trace_steps: List[ParseStep], title: str = "Parsing Trace") -> str:
        """
        Generate HTML representation of parsing trace.

        Args:
            trace_steps: List of ParseStep objects
            title: Title for the trace

        Returns:
            HTML string showing step-by-step parsing
        """
        if not trace_steps:
            return self._generate_empty_trace_html("No parsing steps recorded")

        html_lines = []

        html_lines.append(f'<div class="{self.config.trace_css_classes}">')
        html_lines.append(f'<h3>{html.escape(title)}</h3>')

        html_lines.append('<table class="grammar-table trace-table" role="table" aria-label="Step-by-step parsing trace">')
        html_lines.append('<thead>')
        html_lines.append('<tr>')
        html_lines.append('<th class="grammar-table-header grammar-table-header-primary" scope="col">Step</th>')
        for heading in ('Stack', 'Input', 'Action', 'Production'):
            html_lines.append(f'<th class="grammar-table-header" scope="col">{heading}</th>')
        html_lines.append('</tr>')
        html_lines.append('</thead>')
        html_lines.append('<tbody>')

        for step in trace_steps:
            html_lines.append(self._format_trace_step(step))

        html_lines.append('</tbody>')
        html_lines.append('</table>')
        html_lines.append('</div>')

        return '\n'.join(html_lines)

    def _format_trace_step(self, step: ParseStep) -> str:
        """Format a single parsing step as HTML table row."""
        lines = []
        action_class = self._get_action_css_class(step)

        lines.append(f'<tr class="{action_class}">')
        lines.append(f'<td class="grammar-table-cell grammar-table-cell-primary step-number">{step.step_number}</td>')
        lines.append(f'<td class="grammar-table-cell stack">{html.escape(step.stack_display)}</td>')
        lines.append(f'<td class="grammar-table-cell input">{html.escape(" ".join(step.remaining_input))}</td>')
        lines.append(f'<td class="grammar-table-cell action">{html.escape(step.action)}</td>')

        production_str = html.escape(str(step.production_used)) if step.production_used else ""
        lines.append(f'<td class="grammar-table-cell production">{production_str}</td>')

        lines.append('</tr>')

        return '\n'.join(lines)

    def _get_action_css_class(self, step: ParseStep) -> str:
        """Get CSS class name for a step's action."""
        if step.action_entry is None:
            return 'error-step'
        return f'{step.action_entry.action_type.value}-step'

    def _generate_empty_trace_html(self, message: str) -> str:
        """Generate HTML for empty trace."""
        html_lines = []
        html_lines.append(f'<div class="{self.config.error_css_classes}">')
        html_lines.append(f'<p>{html.escape(message)}</p>')
        html_lines.append('</div>')
        return '\n'.join(html_lines)


class ErrorMessageFormatter:
    """Formats error messages and conflict reports with styling."""

    def __init__(self, config: Optional[VisualizationConfig] = None):
        self.config = config or VisualizationConfig()

    def format_parse_error(self, error_message: str, title: str = "Parse Error") -> str:
        """Format a parsing or blocking message as HTML."""
        html_lines = []

        if self.config.include_inline_styles:
            html_lines.append(self._generate_error_styles())

        html_lines.append(f'<div class="{self.config.error_css_classes}">')
        html_lines.append(f'<h4>{html.escape(title)}</h4>')
        html_lines.append(f'<p class="error-text">{html.escape(error_message)}</p>')
        html_lines.append('</div>')

        return '\n'.join(html_lines)

    def format_conflict_report(self, conflicts: Iterable[Conflict]) -> str:
        """
        Format a conflict report as HTML.

        Each conflict lists the kept and the rejected action together with
        the items that justify each of them.

        Args:
            conflicts: Conflict records from the table generator

        Returns:
            Formatted HTML conflict report
        """
        conflicts = list(conflicts)
        if not conflicts:
            return '<div class="no-conflicts">No conflicts detected: the grammar is LR(0).</div>'

        html_lines = []

        if self.config.include_inline_styles:
            html_lines.append(self._generate_error_styles())

        html_lines.append('<div class="conflict-report">')
        html_lines.append(f'<h4>Grammar Conflicts ({len(conflicts)} found)</h4>')

        for i, conflict in enumerate(conflicts, 1):
            html_lines.append('<div class="conflict-item">')
            html_lines.append(f'<h5>Conflict {i}: {html.escape(conflict.kind.value)}</h5>')
            html_lines.append(f'<p><strong>State:</strong> {conflict.state_id}</p>')
            html_lines.append(f'<p><strong>Symbol:</strong> {html.escape(conflict.symbol)}</p>')
            html_lines.append(f'<p><strong>Kept:</strong> {html.escape(str(conflict.existing))}</p>')
            html_lines.append(self._format_items(conflict.existing_items))
            html_lines.append(f'<p><strong>Rejected:</strong> {html.escape(str(conflict.incoming))}</p>')
            html_lines.append(self._format_items(conflict.incoming_items))
            html_lines.append('</div>')

        html_lines.append('</div>')

        return '\n'.join(html_lines)

    def format_grammar_errors(self, errors: List[Dict]) -> str:
        """Format grammar validation errors (as dictionaries) as an HTML list."""
        if not errors:
            return '<div class="no-errors">No grammar errors found.</div>'

        html_lines = []

        if self.config.include_inline_styles:
            html_lines.append(self._generate_error_styles())

        html_lines.append('<div class="grammar-errors">')
        html_lines.append(f'<h4>Grammar Errors ({len(errors)} found)</h4>')
        html_lines.append('<ul>')
        for error in errors:
            prefix = f"Row {error['rowId']}: " if error.get('rowId') else ""
            html_lines.append(f'<li class="error-item">{html.escape(prefix + error["message"])}</li>')
        html_lines.append('</ul>')
        html_lines.append('</div>')

        return '\n'.join(html_lines)

    def _format_items(self, items: Iterable[str]) -> str:
        lines = ['<ul class="conflict-items">']
        for item in items:
            lines.append(f'<li><code>{html.escape(item)}</code></li>')
        lines.append('</ul>')
        return '\n'.join(lines)

    def _generate_error_styles(self) -> str:
        """Generate inline CSS styles for error messages."""
        return """
<style>
.error-message {
    color: #cc0000;
    background-color: #ffeeee;
    border: 1px solid #cc0000;
    border-radius: 4px;
    padding: 10px;
    margin: 10px 0;
    font-family: Arial, sans-serif;
}

.error-text {
    font-weight: bold;
    margin: 5px 0;
}

.conflict-report, .grammar-errors {
    background-color: #fff8e1;
    border: 1px solid #ff9800;
    border-radius: 4px;
    padding: 10px;
    margin: 10px 0;
}

.conflict-item, .error-item {
    margin: 10px 0;
    padding: 8px;
    background-color: #ffffff;
    border-left: 3px solid #ff9800;
}

.no-conflicts, .no-errors {
    color: #4caf50;
    font-weight: bold;
    padding: 10px;
    background-color: #e8f5e8;
    border: 1px solid #4caf50;
    border-radius: 4px;
}
</style>
"""
