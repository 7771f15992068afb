"""
LR(0) Parser Implementation - Grammar Model, Item Sets, Tables and Parse Engine

This module implements the canonical LR(0) construction for context-free
grammars: grammar building and augmentation, closure/goto over LR(0) items,
the worklist automaton builder, ACTION/GOTO table generation with conflict
provenance, and a table-driven shift-reduce engine that records a full trace.
"""

from dataclasses import dataclass, field, replace
from typing import List, Dict, Tuple, Optional, Any, FrozenSet, Iterable, Sequence
import re
from enum import Enum


END_MARKER = '$'
EPSILON_DISPLAY = 'ε'
EPSILON_SPELLINGS = frozenset({'ε', 'eps', 'epsilon'})
SINGLE_CHAR_TOKENS = frozenset('()+*|$')
ITEM_DOT = '•'


@dataclass(frozen=True)
class EngineConfig:
    """Configuration options for the LR(0) pipeline."""
    prime_marker: str = "'"  # Appended to the start symbol until it is unique
    max_steps: int = 1000  # Upper bound on parse loop iterations


DEFAULT_CONFIG = EngineConfig()


# ---------------------------------------------------------------------------
# Grammar model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Production:
    """Represents a single production rule in a context-free grammar."""
    prod_id: int
    lhs: str  # Left-hand side non-terminal
    rhs: Tuple[str, ...]  # Right-hand side symbols, empty for epsilon
    raw: str = ""  # Display string

    @property
    def is_epsilon(self) -> bool:
        return not self.rhs

    def __str__(self) -> str:
        if self.raw:
            return self.raw
        if self.is_epsilon:
            return f"{self.lhs} -> {EPSILON_DISPLAY}"
        return f"{self.lhs} -> {' '.join(self.rhs)}"


@dataclass(frozen=True)
class Grammar:
    """Represents a validated context-free grammar."""
    start_symbol: str
    non_terminals: FrozenSet[str]
    terminals: FrozenSet[str]
    productions: Tuple[Production, ...]

    def __str__(self) -> str:
        lines = [f"Start Symbol: {self.start_symbol}"]
        lines.append(f"Terminals: {sorted(self.terminals)}")
        lines.append(f"Non-terminals: {sorted(self.non_terminals)}")
        lines.append("Productions:")
        for prod in self.productions:
            lines.append(f"  {prod.prod_id}: {prod}")
        return "\n".join(lines)


@dataclass
class GrammarRow:
    """One authoring row: a left-hand side with its alternatives."""
    row_id: str
    left: str
    right: List[str] = field(default_factory=list)
    has_epsilon: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> 'GrammarRow':
        """Build a row from its JSON form ``{id, left, right, hasEpsilon}``."""
        right = data.get('right') or []
        if isinstance(right, str):
            # Text form: alternatives separated by '|'
            right = right.split('|')
        return cls(
            row_id=str(data.get('id') or f"row-{index + 1}"),
            left=str(data.get('left') or ''),
            right=[str(alt) for alt in right],
            has_epsilon=bool(data.get('hasEpsilon', False))
        )


@dataclass(frozen=True)
class BuildError:
    """A single grammar validation problem, tied to a row where possible."""
    message: str
    row_id: Optional[str] = None
    field: Optional[str] = None  # "lhs" or "rhs"
    alt_index: Optional[int] = None

    def __str__(self) -> str:
        if self.row_id is None:
            return self.message
        location = f"row {self.row_id}"
        if self.field == 'rhs' and self.alt_index is not None:
            location += f", alternative {self.alt_index + 1}"
        return f"{location}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rowId': self.row_id,
            'message': self.message,
            'field': self.field,
            'altIndex': self.alt_index
        }


@dataclass
class GrammarBuildResult:
    """Outcome of building a grammar from rows."""
    grammar: Optional[Grammar] = None
    errors: List[BuildError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.grammar is not None and not self.errors


class GrammarInvalid(ValueError):
    """Raised when a grammar cannot be built, augmented or turned into an automaton."""

    def __init__(self, errors: Iterable[Any]):
        self.errors = list(errors)
        super().__init__("; ".join(str(error) for error in self.errors))


def tokenize_symbols(text: str) -> List[str]:
    """
    Split text into grammar symbols or input tokens.

    Whitespace separates tokens, the characters in SINGLE_CHAR_TOKENS always
    stand alone, and any other run of characters is read up to the next
    whitespace or single-character token.

    Args:
        text: Right-hand side alternative or parse input

    Returns:
        List of token strings in order
    """
    tokens = []
    position = 0

    while position < len(text):
        char = text[position]

        if char.isspace():
            position += 1
            continue

        if char in SINGLE_CHAR_TOKENS:
            tokens.append(char)
            position += 1
            continue

        end = position
        while end < len(text) and not text[end].isspace() and text[end] not in SINGLE_CHAR_TOKENS:
            end += 1
        tokens.append(text[position:end])
        position = end

    return tokens


def build_grammar_from_rows(rows: Sequence[GrammarRow]) -> GrammarBuildResult:
    """
    Validate authoring rows and build a Grammar from them.

    Every problem is collected rather than stopping at the first one, so the
    caller can show all of them at once. The first row's left-hand side is
    the start symbol.

    Args:
        rows: Grammar rows in authoring order

    Returns:
        GrammarBuildResult with either a grammar or the list of errors
    """
    errors: List[BuildError] = []
    non_terminals: List[str] = []
    first_row_for_lhs: Dict[str, str] = {}
    reported_duplicates = set()

    if not rows:
        return GrammarBuildResult(errors=[BuildError("Grammar has no productions")])

    # Left-hand sides: emptiness, whitespace, uniqueness
    for index, row in enumerate(rows):
        lhs = row.left.strip()

        if not lhs:
            has_content = any(alt.strip() for alt in row.right) or row.has_epsilon
            if has_content or index == 0:
                errors.append(BuildError("LHS cannot be empty", row.row_id, 'lhs'))
            continue

        if re.search(r'\s', lhs):
            errors.append(BuildError("LHS cannot contain spaces", row.row_id, 'lhs'))

        if lhs in first_row_for_lhs:
            message = f"Duplicate LHS: '{lhs}'"
            errors.append(BuildError(message, row.row_id, 'lhs'))
            if lhs not in reported_duplicates:
                errors.append(BuildError(message, first_row_for_lhs[lhs], 'lhs'))
                reported_duplicates.add(lhs)
        else:
            first_row_for_lhs[lhs] = row.row_id
            non_terminals.append(lhs)

    non_terminal_set = frozenset(non_terminals)
    start_symbol = rows[0].left.strip()

    # Productions, in row order with epsilon first
    productions: List[Production] = []
    terminals = set()

    for row in rows:
        lhs = row.left.strip()
        if not lhs:
            continue

        if row.has_epsilon:
            productions.append(Production(
                prod_id=len(productions),
                lhs=lhs,
                rhs=(),
                raw=f"{lhs} -> {EPSILON_DISPLAY}"
            ))

        for alt_index, alternative in enumerate(row.right):
            alternative = alternative.strip()
            if not alternative:
                continue

            symbols = tokenize_symbols(alternative)
            if END_MARKER in symbols:
                errors.append(BuildError(
                    f"Symbol '{END_MARKER}' is reserved for end of input",
                    row.row_id, 'rhs', alt_index
                ))
                continue

            productions.append(Production(
                prod_id=len(productions),
                lhs=lhs,
                rhs=tuple(symbols),
                raw=f"{lhs} -> {' '.join(symbols)}"
            ))
            terminals.update(s for s in symbols if s not in non_terminal_set)

    if not productions and not errors:
        errors.append(BuildError("Grammar has no productions"))

    if errors:
        return GrammarBuildResult(errors=errors)

    return GrammarBuildResult(grammar=Grammar(
        start_symbol=start_symbol,
        non_terminals=non_terminal_set,
        terminals=frozenset(terminals),
        productions=tuple(productions)
    ))


class GrammarProcessor:
    """Processes CFG input text into grammar rows."""

    PRODUCTION_START = re.compile(r"^([A-Za-z_][\w']*)\s*(?:->|:|=)\s*(.*)$")

    def __init__(self):
        self.rows: List[GrammarRow] = []
        self._rows_by_lhs: Dict[str, GrammarRow] = {}

    def parse_grammar_text(self, cfg_text: str) -> List[GrammarRow]:
        """
        Parse CFG text into rows.

        Supports formats:
        - A -> alpha | beta
        - A : alpha | beta
        - A = alpha | beta

        Lines starting with '|' continue the previous production, a repeated
        left-hand side adds alternatives to its existing row, and an
        alternative spelled 'ε', 'eps' or 'epsilon' marks the row as
        nullable.

        Raises:
            GrammarInvalid: if a line cannot be attached to any production
        """
        self._reset()
        errors = []
        current: Optional[GrammarRow] = None

        for line_number, line in self._clean_input(cfg_text):
            match = self.PRODUCTION_START.match(line)

            if line.startswith('|') and current is not None:
                self._add_alternatives(current, line[1:])
            elif match:
                current = self._row_for(match.group(1))
                self._add_alternatives(current, match.group(2))
            elif current is not None:
                # Continuation of the last alternative
                if current.right:
                    current.right[-1] += ' ' + line
                else:
                    current.right.append(line)
            else:
                errors.append(BuildError(f"Line {line_number}: expected a production like 'A -> alpha'"))

        if errors:
            raise GrammarInvalid(errors)

        return list(self.rows)

    def _reset(self):
        """Reset internal state for new grammar parsing."""
        self.rows = []
        self._rows_by_lhs = {}

    def _clean_input(self, cfg_text: str) -> List[Tuple[int, str]]:
        """Strip comments and blank lines, keeping original line numbers."""
        cfg_text = re.sub(r'/\*.*?\*/', lambda m: '\n' * m.group(0).count('\n'), cfg_text, flags=re.DOTALL)
        cfg_text = re.sub(r'//.*$', '', cfg_text, flags=re.MULTILINE)

        lines = []
        for number, line in enumerate(cfg_text.split('\n'), 1):
            line = line.strip()
            if line:
                lines.append((number, line))
        return lines

    def _row_for(self, lhs: str) -> GrammarRow:
        if lhs not in self._rows_by_lhs:
            row = GrammarRow(row_id=f"row-{len(self.rows) + 1}", left=lhs)
            self.rows.append(row)
            self._rows_by_lhs[lhs] = row
        return self._rows_by_lhs[lhs]

    def _add_alternatives(self, row: GrammarRow, rhs_text: str):
        for alternative in rhs_text.split('|'):
            alternative = alternative.strip()
            if alternative in EPSILON_SPELLINGS:
                row.has_epsilon = True
            elif alternative:
                row.right.append(alternative)


def grammar_from_text(cfg_text: str) -> Grammar:
    """
    Convenience wrapper: parse CFG text and build a Grammar.

    Raises:
        GrammarInvalid: carrying every BuildError found
    """
    rows = GrammarProcessor().parse_grammar_text(cfg_text)
    result = build_grammar_from_rows(rows)
    if not result.success:
        raise GrammarInvalid(result.errors)
    return result.grammar


# ---------------------------------------------------------------------------
# Augmentation and items
# ---------------------------------------------------------------------------

@dataclass(frozen=True, order=True)
class LR0Item:
    """An LR(0) item: a production id and a dot position in its right-hand side."""
    prod_id: int
    dot: int

    @property
    def key(self) -> str:
        return f"{self.prod_id}@{self.dot}"

    def advance(self) -> 'LR0Item':
        return LR0Item(self.prod_id, self.dot + 1)


@dataclass(frozen=True)
class AugmentedGrammar:
    """Grammar with the synthetic start production ``S' -> S`` at index 0."""
    original_start: str
    start_prime: str
    productions: Tuple[Production, ...]
    terminals: FrozenSet[str]
    non_terminals: FrozenSet[str]

    def next_symbol(self, item: LR0Item) -> Optional[str]:
        """Get the symbol after the dot, or None if the item is complete."""
        rhs = self.productions[item.prod_id].rhs
        if item.dot < len(rhs):
            return rhs[item.dot]
        return None

    def is_complete(self, item: LR0Item) -> bool:
        return item.dot >= len(self.productions[item.prod_id].rhs)

    def format_item(self, item: LR0Item) -> str:
        """Render an item as ``A -> alpha • beta``."""
        production = self.productions[item.prod_id]
        if production.is_epsilon:
            return f"{production.lhs} -> {ITEM_DOT}"
        symbols = list(production.rhs)
        symbols.insert(item.dot, ITEM_DOT)
        return f"{production.lhs} -> {' '.join(symbols)}"


def augment_grammar(grammar: Grammar, config: EngineConfig = DEFAULT_CONFIG) -> AugmentedGrammar:
    """
    Produce the augmented grammar.

    The synthetic start symbol is the original one with the prime marker
    appended, repeated until it collides with no terminal or non-terminal.
    Original productions are re-indexed from 1 in input order.

    Raises:
        GrammarInvalid: if the start symbol is empty or there are no productions
    """
    errors = []
    if not grammar.start_symbol:
        errors.append("Grammar has no start symbol")
    if not grammar.productions:
        errors.append("Grammar has no productions")
    if errors:
        raise GrammarInvalid(errors)

    start_prime = grammar.start_symbol + config.prime_marker
    while start_prime in grammar.non_terminals or start_prime in grammar.terminals:
        start_prime += config.prime_marker

    start_production = Production(
        prod_id=0,
        lhs=start_prime,
        rhs=(grammar.start_symbol,),
        raw=f"{start_prime} -> {grammar.start_symbol}"
    )
    reindexed = [replace(production, prod_id=index)
                 for index, production in enumerate(grammar.productions, 1)]

    return AugmentedGrammar(
        original_start=grammar.start_symbol,
        start_prime=start_prime,
        productions=tuple([start_production] + reindexed),
        terminals=grammar.terminals,
        non_terminals=grammar.non_terminals | {start_prime}
    )


def items_signature(items: Iterable[LR0Item]) -> str:
    """Canonical identity of an item set: sorted, deduplicated item keys."""
    return "|".join(sorted({item.key for item in items}))


# ---------------------------------------------------------------------------
# Automaton
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LR0State:
    """Represents a state in the LR(0) automaton."""
    state_id: int
    items: Tuple[LR0Item, ...]  # Closure-saturated, sorted by (prod_id, dot)
    signature: str


@dataclass(frozen=True)
class Transition:
    """A shift or goto edge; both kinds share this shape."""
    from_id: int
    symbol: str
    to_id: int


@dataclass(frozen=True)
class LR0Automaton:
    """Represents the canonical collection of LR(0) states."""
    grammar: AugmentedGrammar
    states: Tuple[LR0State, ...]
    transitions: Tuple[Transition, ...]
    start_state_id: int = 0

    def state(self, state_id: int) -> LR0State:
        return self.states[state_id]

    def transition_lookup(self) -> Dict[int, Dict[str, int]]:
        """Index transitions as from_id -> symbol -> to_id, keeping discovery order."""
        lookup: Dict[int, Dict[str, int]] = {}
        for transition in self.transitions:
            lookup.setdefault(transition.from_id, {})[transition.symbol] = transition.to_id
        return lookup

    def accepting_states(self) -> List[int]:
        """States holding the completed synthetic start item."""
        accept_item = LR0Item(0, 1)
        return [state.state_id for state in self.states if accept_item in state.items]

    def __str__(self) -> str:
        lines = [f"LR(0) Automaton with {len(self.states)} states"]
        lines.append(f"Start state: {self.start_state_id}")
        lines.append("\nStates:")
        for state in self.states:
            lines.append(f"State {state.state_id}:")
            for item in state.items:
                lines.append(f"  {self.grammar.format_item(item)}")
        lines.append("\nTransitions:")
        for transition in self.transitions:
            lines.append(f"  GOTO({transition.from_id}, {transition.symbol}) = {transition.to_id}")
        return "\n".join(lines)


@dataclass
class LR0BuildResult:
    """Outcome of an automaton build: the automaton or the reasons it failed."""
    automaton: Optional[LR0Automaton] = None
    errors: List[str] = field(default_factory=list)


class LR0ItemSetBuilder:
    """Builds LR(0) item sets and constructs the canonical LR(0) automaton."""

    def __init__(self, grammar: AugmentedGrammar):
        self.grammar = grammar

        # Productions by LHS for closure expansion
        self._productions_by_lhs: Dict[str, List[int]] = {}
        for production in grammar.productions:
            self._productions_by_lhs.setdefault(production.lhs, []).append(production.prod_id)

        # State management, reset by every build
        self.states: List[LR0State] = []
        self.transitions: List[Transition] = []
        self.state_by_signature: Dict[str, int] = {}
        self.next_state_id = 0

    def closure(self, items: Iterable[LR0Item]) -> List[LR0Item]:
        """
        Compute the closure of a set of LR(0) items.

        Algorithm:
        1. Seed the worklist with the given items
        2. Take an item [A -> α•Bβ]; if B is a non-terminal,
           add [B -> •γ] for every production B -> γ not already present
        3. Repeat until the worklist is empty

        Args:
            items: Seed items

        Returns:
            The closed item set sorted by (prod_id, dot)
        """
        closure_items: Dict[str, LR0Item] = {}
        worklist: List[LR0Item] = []

        for item in items:
            if item.key not in closure_items:
                closure_items[item.key] = item
                worklist.append(item)

        while worklist:
            item = worklist.pop(0)
            next_symbol = self.grammar.next_symbol(item)
            if next_symbol is None or next_symbol not in self.grammar.non_terminals:
                continue

            for prod_id in self._productions_by_lhs.get(next_symbol, []):
                new_item = LR0Item(prod_id, 0)
                if new_item.key not in closure_items:
                    closure_items[new_item.key] = new_item
                    worklist.append(new_item)

        return sorted(closure_items.values())

    def goto(self, items: Iterable[LR0Item], symbol: str) -> List[LR0Item]:
        """
        Compute GOTO(I, X).

        Advances the dot over X in every item of I expecting X and closes the
        result. An empty list means GOTO is undefined for (I, X).
        """
        moved = [item.advance() for item in items if self.grammar.next_symbol(item) == symbol]
        if not moved:
            return []
        return self.closure(moved)

    def build_lr0_automaton(self) -> LR0Automaton:
        """
        Build the canonical LR(0) automaton.

        Algorithm:
        1. Create initial state closure({[S' -> •S]})
        2. Dequeue a state; for each symbol after a dot, in order of first
           occurrence in its sorted items, compute GOTO
        3. Reuse the state with the same signature or allocate the next id
        4. Continue until the worklist is empty

        State ids and transitions depend only on the grammar and this
        traversal order, so repeated builds are identical.
        """
        self.states = []
        self.transitions = []
        self.state_by_signature = {}
        self.next_state_id = 0

        initial_state, _ = self._create_or_find_state(self.closure([LR0Item(0, 0)]))
        worklist = [initial_state]

        while worklist:
            current_state = worklist.pop(0)

            for symbol in self._get_symbols_after_dot(current_state.items):
                goto_items = self.goto(current_state.items, symbol)
                if not goto_items:
                    continue

                target_state, created = self._create_or_find_state(goto_items)
                if created:
                    worklist.append(target_state)

                self.transitions.append(Transition(current_state.state_id, symbol, target_state.state_id))

        return LR0Automaton(
            grammar=self.grammar,
            states=tuple(self.states),
            transitions=tuple(self.transitions),
            start_state_id=0
        )

    def _create_or_find_state(self, items: List[LR0Item]) -> Tuple[LR0State, bool]:
        """Return the state with this item set's signature, creating it if new."""
        signature = items_signature(items)

        if signature in self.state_by_signature:
            return self.states[self.state_by_signature[signature]], False

        state = LR0State(state_id=self.next_state_id, items=tuple(items), signature=signature)
        self.states.append(state)
        self.state_by_signature[signature] = state.state_id
        self.next_state_id += 1
        return state, True

    def _get_symbols_after_dot(self, items: Iterable[LR0Item]) -> List[str]:
        """Distinct symbols after a dot, in order of first occurrence."""
        symbols: List[str] = []
        for item in items:
            next_symbol = self.grammar.next_symbol(item)
            if next_symbol is not None and next_symbol not in symbols:
                symbols.append(next_symbol)
        return symbols


def build_lr0_automaton(grammar: Grammar, config: EngineConfig = DEFAULT_CONFIG) -> LR0BuildResult:
    """
    Augment a grammar and build its automaton.

    Validation problems abort the build and come back as a reason list
    instead of an exception.
    """
    try:
        augmented = augment_grammar(grammar, config)
    except GrammarInvalid as e:
        return LR0BuildResult(errors=[str(error) for error in e.errors])

    return LR0BuildResult(automaton=LR0ItemSetBuilder(augmented).build_lr0_automaton())


# ---------------------------------------------------------------------------
# Parse table
# ---------------------------------------------------------------------------

class ActionType(Enum):
    """Enumeration of LR parsing actions."""
    SHIFT = "shift"
    REDUCE = "reduce"
    ACCEPT = "accept"


@dataclass(frozen=True)
class ParseAction:
    """A single ACTION table entry."""
    action_type: ActionType
    value: Optional[int] = None  # Target state for shift, production id for reduce

    @classmethod
    def shift(cls, to_state: int) -> 'ParseAction':
        return cls(ActionType.SHIFT, to_state)

    @classmethod
    def reduce(cls, prod_id: int) -> 'ParseAction':
        return cls(ActionType.REDUCE, prod_id)

    @classmethod
    def accept(cls) -> 'ParseAction':
        return cls(ActionType.ACCEPT)

    def __str__(self) -> str:
        if self.action_type == ActionType.SHIFT:
            return f"shift {self.value}"
        elif self.action_type == ActionType.REDUCE:
            return f"reduce {self.value}"
        return "accept"

    def to_dict(self) -> Dict[str, Any]:
        if self.action_type == ActionType.SHIFT:
            return {'type': 'shift', 'to': self.value}
        elif self.action_type == ActionType.REDUCE:
            return {'type': 'reduce', 'prodId': self.value}
        return {'type': 'accept'}


class ConflictKind(Enum):
    SHIFT_REDUCE = "shift/reduce"
    REDUCE_REDUCE = "reduce/reduce"


@dataclass(frozen=True)
class Conflict:
    """Represents a parsing conflict: the kept action and the rejected one."""
    state_id: int
    symbol: str
    existing: ParseAction
    incoming: ParseAction
    kind: ConflictKind
    existing_items: Tuple[str, ...] = ()
    incoming_items: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return (f"{self.kind.value} conflict in state {self.state_id} on symbol '{self.symbol}': "
                f"kept {self.existing}, rejected {self.incoming}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stateId': self.state_id,
            'symbol': self.symbol,
            'existing': self.existing.to_dict(),
            'incoming': self.incoming.to_dict(),
            'kind': self.kind.value,
            'causedBy': {
                'existingItems': list(self.existing_items),
                'incomingItems': list(self.incoming_items)
            }
        }


@dataclass(frozen=True)
class LR0ParseTable:
    """ACTION/GOTO tables plus every conflict found while filling them."""
    action_table: Dict[Tuple[int, str], ParseAction]  # (state, terminal) -> action
    goto_table: Dict[Tuple[int, str], int]  # (state, non_terminal) -> state
    conflicts: Tuple[Conflict, ...] = ()

    @property
    def is_lr0(self) -> bool:
        return not self.conflicts

    def action(self, state_id: int, symbol: str) -> Optional[ParseAction]:
        return self.action_table.get((state_id, symbol))

    def goto(self, state_id: int, non_terminal: str) -> Optional[int]:
        return self.goto_table.get((state_id, non_terminal))

    def __str__(self) -> str:
        lines = ["Parsing Tables:"]
        lines.append("\nAction Table:")
        for (state, terminal), action in sorted(self.action_table.items(), key=lambda kv: kv[0]):
            lines.append(f"  ACTION[{state}, {terminal}] = {action}")
        lines.append("\nGoto Table:")
        for (state, non_terminal), target in sorted(self.goto_table.items()):
            lines.append(f"  GOTO[{state}, {non_terminal}] = {target}")
        return "\n".join(lines)


class LR0TableGenerator:
    """Generates LR(0) parsing tables from an LR(0) automaton."""

    def __init__(self, automaton: LR0Automaton):
        self.automaton = automaton
        self.grammar = automaton.grammar
        self.action_table: Dict[Tuple[int, str], ParseAction] = {}
        self.goto_table: Dict[Tuple[int, str], int] = {}
        self.conflicts: List[Conflict] = []

        # LR(0) reduces regardless of lookahead: every terminal, then '$'
        self._reduce_symbols = [t for t in sorted(self.grammar.terminals) if t != END_MARKER] + [END_MARKER]

    def generate_parsing_tables(self) -> LR0ParseTable:
        """
        Generate the ACTION and GOTO tables from the automaton.

        Algorithm, per state in id order:
        1. Transition on terminal a to j: ACTION[i, a] = shift j
        2. Transition on non-terminal A (not S') to j: GOTO[i, A] = j
        3. Item [S' -> S•]: ACTION[i, $] = accept
        4. Item [A -> α•]: ACTION[i, t] = reduce A -> α for every terminal t and $

        A second, different action for an occupied cell is recorded as a
        Conflict and the first action stays in the table.

        Returns:
            LR0ParseTable with the tables and conflict list
        """
        self._reset_tables()
        transitions = self.automaton.transition_lookup()

        for state in self.automaton.states:
            for symbol, target in transitions.get(state.state_id, {}).items():
                if symbol in self.grammar.terminals:
                    self._add_action(state, symbol, ParseAction.shift(target))
                elif symbol != self.grammar.start_prime:
                    self.goto_table[(state.state_id, symbol)] = target

            for item in state.items:
                if not self.grammar.is_complete(item):
                    continue
                production = self.grammar.productions[item.prod_id]
                if production.lhs == self.grammar.start_prime:
                    self._add_action(state, END_MARKER, ParseAction.accept())
                else:
                    for symbol in self._reduce_symbols:
                        self._add_action(state, symbol, ParseAction.reduce(production.prod_id))

        return LR0ParseTable(
            action_table=dict(self.action_table),
            goto_table=dict(self.goto_table),
            conflicts=tuple(self.conflicts)
        )

    def generate_conflict_report(self) -> str:
        """
        Generate a detailed report of all conflicts found in the parsing tables.

        Returns:
            String containing detailed conflict analysis
        """
        if not self.conflicts:
            return "No conflicts detected in the parsing tables."

        lines = [f"Found {len(self.conflicts)} conflict(s) in the parsing tables:\n"]

        for i, conflict in enumerate(self.conflicts, 1):
            lines.append(f"Conflict {i}: {conflict}")
            lines.append(f"  State {conflict.state_id} details:")
            for item in self.automaton.state(conflict.state_id).items:
                lines.append(f"    {self.grammar.format_item(item)}")

            lines.append(f"  Kept {conflict.existing} because of:")
            for item_text in conflict.existing_items:
                lines.append(f"    {item_text}")
            lines.append(f"  Rejected {conflict.incoming} because of:")
            for item_text in conflict.incoming_items:
                lines.append(f"    {item_text}")

            lines.append("")

        return "\n".join(lines)

    def _reset_tables(self):
        """Reset internal table state for fresh generation."""
        self.action_table.clear()
        self.goto_table.clear()
        self.conflicts.clear()

    def _add_action(self, state: LR0State, symbol: str, incoming: ParseAction):
        """
        Add an action to the ACTION table, detecting conflicts.

        Args:
            state: State whose row is written
            symbol: Terminal symbol or '$'
            incoming: Action to install
        """
        key = (state.state_id, symbol)
        existing = self.action_table.get(key)

        if existing is None:
            self.action_table[key] = incoming
            return

        if existing == incoming:
            return

        if ActionType.SHIFT in (existing.action_type, incoming.action_type):
            kind = ConflictKind.SHIFT_REDUCE
        else:
            kind = ConflictKind.REDUCE_REDUCE

        self.conflicts.append(Conflict(
            state_id=state.state_id,
            symbol=symbol,
            existing=existing,
            incoming=incoming,
            kind=kind,
            existing_items=self._justifying_items(state, symbol, existing),
            incoming_items=self._justifying_items(state, symbol, incoming)
        ))

    def _justifying_items(self, state: LR0State, symbol: str, action: ParseAction) -> Tuple[str, ...]:
        """Formatted items of the state that produce the given action."""
        if action.action_type == ActionType.SHIFT:
            matches = [item for item in state.items if self.grammar.next_symbol(item) == symbol]
        elif action.action_type == ActionType.REDUCE:
            matches = [item for item in state.items
                       if item.prod_id == action.value and self.grammar.is_complete(item)]
        elif action.action_type == ActionType.ACCEPT:
            matches = [item for item in state.items
                       if item.prod_id == 0 and self.grammar.is_complete(item)]
        else:
            raise ValueError(f"Unknown action type: {action.action_type}")

        return tuple(self.grammar.format_item(item) for item in matches)


def build_lr0_parse_table(automaton: LR0Automaton) -> LR0ParseTable:
    return LR0TableGenerator(automaton).generate_parsing_tables()


# ---------------------------------------------------------------------------
# Parse engine
# ---------------------------------------------------------------------------

class ParseStatus(Enum):
    ACCEPTED = "accepted"
    ERROR = "error"
    BLOCKED = "blocked"


class ParseErrorKind(Enum):
    """Why a parse run stopped without accepting."""
    GRAMMAR_NOT_LR0 = "grammar_not_lr0"
    UNEXPECTED_TOKEN = "unexpected_token"
    GOTO_MISSING = "goto_missing"
    STACK_UNDERFLOW = "stack_underflow"
    STEP_LIMIT_EXCEEDED = "step_limit_exceeded"


@dataclass(frozen=True)
class StackEntry:
    """A parse stack cell: a state and the symbol that led to it."""
    state_id: int
    symbol: Optional[str] = None  # None for the bottom entry

    def __str__(self) -> str:
        if self.symbol is None:
            return str(self.state_id)
        return f"{self.symbol} {self.state_id}"


@dataclass
class ParseTreeNode:
    """Represents a node in the parse tree."""
    label: str
    children: List['ParseTreeNode'] = field(default_factory=list)
    is_terminal: bool = False

    def __str__(self) -> str:
        if not self.children:
            return self.label
        return f"{self.label}({' '.join(str(child) for child in self.children)})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'isTerminal': self.is_terminal,
            'children': [child.to_dict() for child in self.children]
        }


@dataclass
class ParseStep:
    """Represents a single step in the parsing trace."""
    step_number: int
    stack: Tuple[StackEntry, ...]
    remaining_input: Tuple[str, ...]
    action: str = ""  # Description, filled once the step is decided
    action_entry: Optional[ParseAction] = None
    production_used: Optional[Production] = None  # For reduce actions

    @property
    def stack_display(self) -> str:
        return ' '.join(str(entry) for entry in self.stack)

    def __str__(self) -> str:
        input_str = ' '.join(self.remaining_input)
        return f"Step {self.step_number}: Stack=[{self.stack_display}] Input=[{input_str}] Action={self.action}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'step': self.step_number,
            'stack': [{'stateId': e.state_id, 'symbol': e.symbol} for e in self.stack],
            'input': list(self.remaining_input),
            'action': self.action,
            'actionEntry': self.action_entry.to_dict() if self.action_entry else None,
            'rule': str(self.production_used) if self.production_used else None
        }


@dataclass
class ParseResult:
    """Represents the result of a parsing run."""
    status: ParseStatus
    trace: List[ParseStep] = field(default_factory=list)
    error_message: str = ""
    error_kind: Optional[ParseErrorKind] = None
    parse_tree: Optional[ParseTreeNode] = None

    @property
    def success(self) -> bool:
        return self.status == ParseStatus.ACCEPTED

    def __str__(self) -> str:
        if self.success:
            return f"Parse successful. Tree: {self.parse_tree}"
        return f"Parse {self.status.value}: {self.error_message}"


class LR0ParsingEngine:
    """
    Table-driven shift-reduce parsing engine.

    Implements stack-based LR parsing with:
    - Shift, reduce, and accept actions
    - Parse tree construction during parsing
    - A trace step recorded before every action
    - Refusal to run on a table with conflicts
    """

    def __init__(self, table: LR0ParseTable, automaton: LR0Automaton,
                 config: EngineConfig = DEFAULT_CONFIG):
        self.table = table
        self.automaton = automaton
        self.grammar = automaton.grammar
        self.config = config

    def parse(self, input_string: str, build_tree: bool = True) -> ParseResult:
        """Tokenize an input string and parse it."""
        return self.parse_tokens(tokenize_symbols(input_string), build_tree)

    def parse_tokens(self, tokens: Sequence[str], build_tree: bool = True) -> ParseResult:
        """
        Parse a pre-tokenized input.

        Algorithm:
        1. Append '$' and push the initial state
        2. Record a step, then look up ACTION[top, lookahead]
        3. Shift: push (token, target) and consume the token
        4. Reduce A -> β: pop |β| entries, push (A, GOTO[top, A])
        5. Accept: stop with the full trace

        Args:
            tokens: Input tokens without the end marker
            build_tree: Whether to maintain the parallel node stack

        Returns:
            ParseResult with status, trace and, when accepted, the parse tree
        """
        if not self.table.is_lr0:
            return ParseResult(
                status=ParseStatus.BLOCKED,
                error_message=(f"Grammar is not LR(0): resolve the {len(self.table.conflicts)} "
                               f"conflict(s) before simulating."),
                error_kind=ParseErrorKind.GRAMMAR_NOT_LR0
            )

        input_buffer = list(tokens) + [END_MARKER]
        stack = [StackEntry(self.automaton.start_state_id)]
        node_stack: List[ParseTreeNode] = []
        trace: List[ParseStep] = []

        while len(trace) < self.config.max_steps:
            current_state = stack[-1].state_id
            lookahead = input_buffer[0]

            step = ParseStep(
                step_number=len(trace) + 1,
                stack=tuple(stack),
                remaining_input=tuple(input_buffer)
            )
            trace.append(step)

            # '$' is only valid as the final end marker
            if lookahead == END_MARKER and len(input_buffer) > 1:
                action = None
            else:
                action = self.table.action(current_state, lookahead)

            if action is None:
                step.action = f"Error: Unexpected token '{lookahead}'"
                return self._error(trace, ParseErrorKind.UNEXPECTED_TOKEN,
                                   f"Unexpected token '{lookahead}' in state {current_state}")

            step.action_entry = action

            if action.action_type == ActionType.SHIFT:
                step.action = f"Shift {action.value}"
                stack.append(StackEntry(action.value, lookahead))
                if build_tree:
                    node_stack.append(ParseTreeNode(label=lookahead, is_terminal=True))
                input_buffer.pop(0)

            elif action.action_type == ActionType.REDUCE:
                production = self.grammar.productions[action.value]
                step.action = f"Reduce: {production}"
                step.production_used = production

                pop_count = len(production.rhs)
                if len(stack) - 1 < pop_count:
                    return self._error(trace, ParseErrorKind.STACK_UNDERFLOW,
                                       "Stack underflow during reduce")

                if pop_count:
                    del stack[-pop_count:]

                top_state = stack[-1].state_id
                goto_state = self.table.goto(top_state, production.lhs)
                if goto_state is None:
                    return self._error(trace, ParseErrorKind.GOTO_MISSING,
                                       f"No GOTO for non-terminal {production.lhs} in state {top_state}")

                stack.append(StackEntry(goto_state, production.lhs))

                if build_tree:
                    children = node_stack[len(node_stack) - pop_count:] if pop_count else []
                    if pop_count:
                        del node_stack[-pop_count:]
                    node_stack.append(ParseTreeNode(label=production.lhs, children=children))

            elif action.action_type == ActionType.ACCEPT:
                step.action = "Accept"
                return ParseResult(
                    status=ParseStatus.ACCEPTED,
                    trace=trace,
                    parse_tree=self._finish_tree(node_stack) if build_tree else None
                )

            else:
                raise ValueError(f"Unknown action type: {action.action_type}")

        return self._error(trace, ParseErrorKind.STEP_LIMIT_EXCEEDED,
                           f"Max steps exceeded ({self.config.max_steps})")

    def _finish_tree(self, node_stack: List[ParseTreeNode]) -> ParseTreeNode:
        """Close the synthetic start production and unwrap it to the original start symbol."""
        root = ParseTreeNode(label=self.grammar.start_prime, children=list(node_stack))
        if len(root.children) == 1:
            return root.children[0]
        return root

    @staticmethod
    def _error(trace: List[ParseStep], kind: ParseErrorKind, message: str) -> ParseResult:
        return ParseResult(status=ParseStatus.ERROR, trace=trace, error_message=message, error_kind=kind)


def run_lr_parse(table: LR0ParseTable, automaton: LR0Automaton, tokens: Sequence[str],
                 build_tree: bool = True, config: EngineConfig = DEFAULT_CONFIG) -> ParseResult:
    return LR0ParsingEngine(table, automaton, config).parse_tokens(tokens, build_tree)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class GrammarWorkflowManager:
    """
    Runs the grammar -> automaton -> table -> parse pipeline for one grammar source.

    The source is either authoring rows or CFG text. Every method rebuilds
    from the source and returns a JSON-ready dictionary with a 'success'
    flag, so callers never see stale artifacts.
    """

    def __init__(self, rows: Optional[Sequence[GrammarRow]] = None, cfg_text: Optional[str] = None,
                 config: EngineConfig = DEFAULT_CONFIG):
        """
        Args:
            rows: Grammar rows, used when given
            cfg_text: CFG text, used when no rows are given
            config: Engine configuration
        """
        self.rows = list(rows) if rows is not None else None
        self.cfg_text = cfg_text
        self.config = config

    def build_grammar(self) -> Dict[str, Any]:
        """Build and describe the grammar, or list every validation error."""
        try:
            grammar = self._grammar()
        except GrammarInvalid as e:
            errors = [self._error_dict(error) for error in e.errors]
            from visualization import ErrorMessageFormatter
            return {
                'success': False,
                'error': "Grammar is invalid",
                'error_type': 'grammar_error',
                'errors': errors,
                'error_html': ErrorMessageFormatter().format_grammar_errors(errors)
            }

        return {
            'success': True,
            'grammar': grammar,
            'start_symbol': grammar.start_symbol,
            'productions': [self._production_dict(p) for p in grammar.productions],
            'terminals': sorted(grammar.terminals),
            'non_terminals': sorted(grammar.non_terminals)
        }

    def build_automaton(self) -> Dict[str, Any]:
        """Build the LR(0) automaton with its DOT rendering."""
        result = self.build_grammar()
        if not result['success']:
            return result

        build = build_lr0_automaton(result['grammar'], self.config)
        if build.automaton is None:
            return {
                'success': False,
                'error': "Automaton construction failed",
                'error_type': 'grammar_error',
                'errors': [{'message': message} for message in build.errors]
            }

        automaton = build.automaton
        from visualization import DOTGenerator
        automaton_dot = DOTGenerator().generate_automaton_dot(automaton)

        return {
            'success': True,
            'automaton': automaton,
            'start_prime': automaton.grammar.start_prime,
            'augmented_productions': [self._production_dict(p) for p in automaton.grammar.productions],
            'states': [
                {
                    'id': state.state_id,
                    'items': [automaton.grammar.format_item(item) for item in state.items],
                    'signature': state.signature
                }
                for state in automaton.states
            ],
            'transitions': [
                {'from': t.from_id, 'symbol': t.symbol, 'to': t.to_id}
                for t in automaton.transitions
            ],
            'automaton_dot': automaton_dot
        }

    def build_parse_table(self) -> Dict[str, Any]:
        """Build the ACTION/GOTO tables with HTML renderings and conflicts."""
        result = self.build_automaton()
        if not result['success']:
            return result

        automaton = result['automaton']
        table = build_lr0_parse_table(automaton)

        from visualization import HTMLTableGenerator, ErrorMessageFormatter
        parse_table_html = HTMLTableGenerator().generate_action_goto_tables_html(table, automaton.grammar)
        conflicts_html = ErrorMessageFormatter().format_conflict_report(table.conflicts)

        action = {}
        for (state_id, symbol), entry in table.action_table.items():
            action.setdefault(str(state_id), {})[symbol] = entry.to_dict()
        goto = {}
        for (state_id, symbol), target in table.goto_table.items():
            goto.setdefault(str(state_id), {})[symbol] = target

        result.update({
            'table': table,
            'action': action,
            'goto': goto,
            'conflicts': [conflict.to_dict() for conflict in table.conflicts],
            'is_lr0': table.is_lr0,
            'parse_table_html': parse_table_html,
            'conflicts_html': conflicts_html,
            'table_info': {
                'states_count': len(automaton.states),
                'action_entries': len(table.action_table),
                'goto_entries': len(table.goto_table),
                'conflicts_count': len(table.conflicts)
            }
        })
        return result

    def parse_input_string(self, input_string: str) -> Dict[str, Any]:
        """
        Parse an input string against the grammar.

        Args:
            input_string: Whitespace/punctuation separated tokens

        Returns:
            Dictionary containing status, trace, tree and their renderings
        """
        result = self.build_parse_table()
        if not result['success']:
            return result

        tokens = tokenize_symbols(input_string)
        parse_result = run_lr_parse(result['table'], result['automaton'], tokens, config=self.config)

        from visualization import DOTGenerator, ErrorMessageFormatter, ParseTraceFormatter
        trace_html = ParseTraceFormatter().generate_trace_html(parse_result.trace)

        response = {
            'success': parse_result.success,
            'status': parse_result.status.value,
            'tokens': tokens,
            'trace': [step.to_dict() for step in parse_result.trace],
            'trace_steps': len(parse_result.trace),
            'trace_html': trace_html,
            'parse_table_html': result['parse_table_html'],
            'table_info': result['table_info'],
            'conflicts': result['conflicts'],
            'input_string': input_string
        }

        if parse_result.success:
            response['parse_tree'] = parse_result.parse_tree.to_dict()
            response['parse_tree_dot'] = DOTGenerator().generate_parse_tree_dot(
                parse_result.parse_tree, f"Parse Tree for '{input_string}'"
            )
        else:
            response['error'] = parse_result.error_message
            response['error_type'] = parse_result.error_kind.value
            title = "Simulation Blocked" if parse_result.status == ParseStatus.BLOCKED else "Parse Error"
            response['error_html'] = ErrorMessageFormatter().format_parse_error(parse_result.error_message, title)

        return response

    def _grammar(self) -> Grammar:
        if self.rows is not None:
            rows = self.rows
        else:
            rows = GrammarProcessor().parse_grammar_text(self.cfg_text or '')

        result = build_grammar_from_rows(rows)
        if not result.success:
            raise GrammarInvalid(result.errors)
        return result.grammar

    @staticmethod
    def _production_dict(production: Production) -> Dict[str, Any]:
        return {
            'id': production.prod_id,
            'left': production.lhs,
            'right': list(production.rhs),
            'raw': str(production)
        }

    @staticmethod
    def _error_dict(error: Any) -> Dict[str, Any]:
        if isinstance(error, BuildError):
            return error.to_dict()
        return {'message': str(error)}
