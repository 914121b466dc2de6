import pytest
from fractions import Fraction

from lycoris.lycoris_interpreter import Interpreter, DEFAULT_MAX_DEPTH
from lycoris.lycoris_datatypes import (
    Vector, Word,
    StackUnderflow, OperandTypeError, DivisionByZero, ExponentTooLarge,
    InvalidCount, IndexOutOfBounds, EmptyReduce, EmptyStack, UnknownWord,
    UnknownToken, RecursionLimit, LycorisError,
)


@pytest.fixture
def interp():
    return Interpreter()


def run(interp, program):
    interp.execute(program)
    return interp.stack_snapshot()


# --- End-to-end programs ---

@pytest.mark.parametrize("program, expected", [
    ("2 3 add print", "5"),
    ("1/2 1/3 add print", "5/6"),
    ("[1 2 3 4] *add print", "10"),
    ("'double' [dup add] def [1 2 3] @double print", "[2 4 6]"),
    ("'x' [1 2 3] def x print", "[1 2 3]"),
    ("0.1 0.2 add print", "3/10"),
    ("1.5e2 print", "150"),
    ("4/2 print", "2"),
])
def test_programs(interp, program, expected):
    assert interp.execute(program) == expected


def test_division_by_zero_produces_no_output(interp):
    with pytest.raises(DivisionByZero):
        interp.execute("5 0 div")
    assert interp.output() == ""
    assert interp.stack_snapshot() == ["5", "0"]


def test_words_can_be_juxtaposed(interp):
    assert run(interp, "2 3add") == ["5"]


# --- Arithmetic ---

@pytest.mark.parametrize("program, expected", [
    ("7 2 sub", "5"),
    ("2 3 mul", "6"),
    ("1 3 div", "1/3"),
    ("2 10 pow", "1024"),
    ("2 -2 pow", "1/4"),
    ("-1/2 3 pow", "-1/8"),
])
def test_arithmetic(interp, program, expected):
    assert run(interp, program) == [expected]


def test_pow_rejects_fractional_exponent(interp):
    with pytest.raises(OperandTypeError):
        interp.execute("2 1/2 pow")


def test_pow_exponent_cap(interp):
    with pytest.raises(ExponentTooLarge):
        interp.execute("2 10001 pow")
    assert interp.stack_snapshot() == ["2", "10001"]


def test_arithmetic_type_error_leaves_stack(interp):
    with pytest.raises(OperandTypeError) as exc:
        interp.execute("'a' 1 add")
    assert exc.value.kind == "TypeError"
    assert interp.stack_snapshot() == ["'a'", "1"]


# --- Stack shuffling ---

@pytest.mark.parametrize("program, expected", [
    ("1 dup", ["1", "1"]),
    ("1 2 drop", ["1"]),
    ("1 2 swap", ["2", "1"]),
    ("1 2 over", ["1", "2", "1"]),
    ("1 2 3 rot", ["2", "3", "1"]),
])
def test_shuffles(interp, program, expected):
    assert run(interp, program) == expected


@pytest.mark.parametrize("program, before", [
    ("dup", []),
    ("drop", []),
    ("1 swap", ["1"]),
    ("1 over", ["1"]),
    ("1 2 rot", ["1", "2"]),
    ("1 add", ["1"]),
    ("print", []),
])
def test_underflow_leaves_stack_unchanged(interp, program, before):
    with pytest.raises(StackUnderflow):
        interp.execute(program)
    assert interp.stack_snapshot() == before


# --- Vectors ---

def test_vec_collects_values(interp):
    assert run(interp, "1 2 3 3 vec") == ["[1 2 3]"]


def test_vec_zero_count(interp):
    assert run(interp, "5 0 vec") == ["5", "[]"]


@pytest.mark.parametrize("program, error", [
    ("1 2 -1 vec", InvalidCount),
    ("1 1/2 vec", InvalidCount),
    ("'a' vec", OperandTypeError),
    ("1 5 vec", StackUnderflow),
])
def test_vec_errors(interp, program, error):
    with pytest.raises(error):
        interp.execute(program)


def test_unpack(interp):
    assert run(interp, "[1 'a' [2]] unpack") == ["1", "'a'", "[2]"]


@pytest.mark.parametrize("program, expected", [
    ("[10 20 30] 0 nth", "10"),
    ("[10 20 30] 2 nth", "30"),
    ("[10 20 30] -1 nth", "30"),
])
def test_nth(interp, program, expected):
    assert run(interp, program) == [expected]


def test_nth_out_of_bounds(interp):
    with pytest.raises(IndexOutOfBounds):
        interp.execute("[1 2] 2 nth")
    assert interp.stack_snapshot() == ["[1 2]", "2"]


def test_nth_requires_integer_index(interp):
    with pytest.raises(OperandTypeError):
        interp.execute("[1 2] 1/2 nth")


def test_slice(interp):
    assert run(interp, "[1 2 3 4] 1 3 slice") == ["[2 3]"]


def test_slice_clamps_like_python(interp):
    assert run(interp, "[1 2 3] 1 10 slice") == ["[2 3]"]


def test_concat_keeps_order(interp):
    assert run(interp, "[1] [2 3] concat") == ["[1 2 3]"]


def test_concat_type_error(interp):
    with pytest.raises(OperandTypeError):
        interp.execute("[1] 2 concat")


def test_length(interp):
    assert run(interp, "[1 [2 3] 'x'] length") == ["3"]


# --- Quotations ---

def test_run_calls_text_and_pushes_others(interp):
    assert run(interp, "3 ['dup' 'add'] run") == ["6"]


def test_run_with_bare_words(interp):
    assert run(interp, "[2 3 add] run") == ["5"]


def test_step_runs_one_element(interp):
    assert run(interp, "[1 2 3] step") == ["1", "[2 3]"]


def test_step_on_empty_vector(interp):
    assert run(interp, "[] step") == []


def test_quote(interp):
    assert run(interp, "5 quote") == ["[5]"]


def test_vector_stores_bare_words_as_text(interp):
    interp.execute("[dup @add]")
    v = interp.stack[-1]
    assert v == Vector(["dup", "add"])
    assert all(isinstance(w, Word) for w in v)


# --- Dictionary ---

def test_def_name_on_top(interp):
    assert run(interp, "[1 2] 'pair' def pair") == ["[1 2]"]


def test_def_body_calls_words(interp):
    interp.execute("'double' [dup add] def 'quad' [double double] def")
    assert run(interp, "3 quad") == ["12"]


def test_def_constant_with_text(interp):
    # Quoted text in a body is data, not a call.
    assert run(interp, "'greet' ['hi'] def greet") == ["['hi']"]


def test_def_type_errors(interp):
    with pytest.raises(OperandTypeError):
        interp.execute("1 [1] def")
    assert interp.stack_snapshot() == ["1", "[1]"]
    with pytest.raises(OperandTypeError):
        interp.execute("'x' 'y' def")


def test_redefinition_replaces_body(interp):
    interp.execute("'k' [1] def 'k' [2] def")
    assert run(interp, "k") == ["[2]"]


def test_undef(interp):
    interp.execute("'x' [1] def 'x' undef")
    assert interp.user_words() == []
    with pytest.raises(UnknownWord):
        interp.execute("'x' undef")
    assert interp.stack_snapshot() == ["'x'"]


def test_words_lists_user_words(interp):
    assert run(interp, "'b' [1] def 'a' [2] def words") == ["['a' 'b']"]


def test_unknown_word_in_quotation(interp):
    with pytest.raises(UnknownWord) as exc:
        interp.execute("['nope'] run")
    assert "nope" in str(exc.value)


def test_unknown_token(interp):
    with pytest.raises(UnknownToken):
        interp.execute("1 foo")


# --- I/O ---

def test_output_persists_across_calls(interp):
    assert interp.execute("1 print") == "1"
    assert interp.execute("'a' print") == "1\n'a'"


def test_clear_only_touches_output(interp):
    interp.execute("7 1 print clear")
    assert interp.output() == ""
    assert interp.stack_snapshot() == ["7"]
    assert interp.execute("2 print") == "2"


def test_clear_output_accessor(interp):
    interp.execute("1 print")
    interp.clear_output()
    assert interp.output() == ""


def test_print_records_side_effect(interp):
    interp.execute("[1 true nil] print")
    assert interp.side_effects == [{'topics': ['stdout'], 'message': '[1 true nil]'}]


def test_side_effects_hold_only_the_latest_call(interp):
    for _ in range(50):
        interp.execute("1 print clear")
    assert interp.output() == ""
    assert interp.side_effects == [{'topics': ['stdout'], 'message': '1'}]
    interp.execute("2")
    assert interp.side_effects == []


# --- Comparison ---

@pytest.mark.parametrize("program, expected", [
    ("1 1 eq", "true"),
    ("1 2/2 eq", "true"),
    ("1 true eq", "false"),
    ("[1 2] [1 2] eq", "true"),
    ("'a' 'a' eq", "true"),
    ("nil nil eq", "true"),
    ("1 2 lt", "true"),
    ("2 1 gt", "true"),
    ("2 2 le", "true"),
    ("1 2 ge", "false"),
    ("'a' 'b' lt", "true"),
])
def test_comparisons(interp, program, expected):
    assert run(interp, program) == [expected]


def test_ordering_requires_same_kind(interp):
    with pytest.raises(OperandTypeError):
        interp.execute("1 'a' lt")


# --- Scopes ---

def test_map_preserves_order(interp):
    interp.execute("'neg' [-1 mul] def")
    assert run(interp, "[1 2 3] @neg") == ["[-1 -2 -3]"]


def test_map_over_empty_vector(interp):
    assert run(interp, "[] @dup") == ["[]"]


def test_map_leaks_extra_values(interp):
    assert run(interp, "[1 2] @dup") == ["1", "2", "[1 2]"]


def test_map_requires_vector(interp):
    with pytest.raises(OperandTypeError):
        interp.execute("1 @dup")


def test_reduce(interp):
    assert run(interp, "[1 2 3] *mul") == ["6"]
    assert run(interp, "[5] *add") == ["6", "5"]


def test_reduce_empty_vector(interp):
    with pytest.raises(EmptyReduce):
        interp.execute("5 [] *add")
    assert interp.stack_snapshot() == ["5", "[]"]


def test_global_folds_whole_stack(interp):
    assert run(interp, "1 2 3 #add") == ["6"]


def test_global_on_empty_stack(interp):
    with pytest.raises(EmptyStack):
        interp.execute("#add")


def test_hash_before_a_word_is_not_a_comment(interp):
    assert run(interp, "5 #print") == ["5"]
    assert interp.output() == ""


def test_hash_without_word_is_comment(interp):
    assert run(interp, "1 # not code\n2") == ["1", "2"]


# --- Errors and state ---

def test_partial_effects_are_kept(interp):
    with pytest.raises(LycorisError):
        interp.execute("1 print 'x' foo")
    assert interp.output() == "1"
    assert interp.stack_snapshot() == ["'x'"]


def test_recursion_limit(interp):
    small = Interpreter(max_depth=20)
    with pytest.raises(RecursionLimit):
        small.execute("'loop' ['loop' quote run] def loop")
    assert len(small.call_stack) == 20


def test_max_depth_from_environment(monkeypatch):
    monkeypatch.setenv("LYCORIS_MAX_DEPTH", "5")
    assert Interpreter().max_depth == 5
    monkeypatch.setenv("LYCORIS_MAX_DEPTH", "lots")
    assert Interpreter().max_depth == DEFAULT_MAX_DEPTH


def test_call_stack_cleared_between_runs(interp):
    interp.execute("'boom' [0 div] def")
    with pytest.raises(DivisionByZero):
        interp.execute("1 boom")
    assert [f['name'] for f in interp.call_stack] == ['boom']
    interp.execute("drop drop")
    assert interp.call_stack == []


def test_debug_trace(monkeypatch, capsys):
    monkeypatch.setenv("LYCORIS_DEBUG", "1")
    Interpreter().execute("1 2 add")
    assert "[DBG]" in capsys.readouterr().err


def test_accessors_and_reset(interp):
    interp.execute("'x' [1] def 1 2 print")
    assert interp.stack_depth() == 1
    interp.reset()
    assert interp.stack_depth() == 0
    assert interp.user_words() == []
    assert interp.output() == ""


def test_stack_values_are_fractions(interp):
    interp.execute("1/3")
    assert interp.stack == [Fraction(1, 3)]
