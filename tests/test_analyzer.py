"""NestingAnalyzerのテスト。"""

import logging

import pytest

from nesting_lint.config import LintConfig
from nesting_lint.engine.analyzer import NestingAnalyzer, SourceText, TRACE_LOGGER_NAME
from nesting_lint.engine.errors import StackProtocolError, UnflushedViolationError
from nesting_lint.engine.walker import walk
from nesting_lint.models.context import ReasonKind
from nesting_lint.models.span import LocationRange, Span
from nesting_lint.models.syntax import NodeKind


def blocks_of(node):
    """ノード配下のBLOCKを行きがけ順に返す。"""
    return [n for n in node.iter_nodes() if n.kind is NodeKind.BLOCK]


class TestDepth:
    """ネスト深さの検査テスト。"""

    def test_at_threshold_no_diagnostic(self, tree, config, analyze):
        """max_depth 段のネストでは診断なし。"""
        root = tree.func(tree.nested_ifs(config.max_depth))
        diagnostics, _ = analyze(config, root)
        assert diagnostics == []

    def test_one_past_threshold(self, tree, config, analyze):
        """max_depth + 1 段で深さ診断が1件。"""
        root = tree.func(tree.nested_ifs(config.max_depth + 1))
        diagnostics, _ = analyze(config, root)

        assert len(diagnostics) == 1
        assert diagnostics[0].reason.kind is ReasonKind.DEPTH
        assert diagnostics[0].reason.count == config.max_depth + 1

    def test_four_nested_ifs(self, tree, analyze):
        """4段の if（max_depth=3）で、最内の本体と最初の本体を指す。"""
        config = LintConfig(max_depth=3, debug=False)
        outer_if = tree.nested_ifs(4)
        root = tree.func(outer_if)

        diagnostics, _ = analyze(config, root)
        then_blocks = blocks_of(outer_if)

        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert diagnostic.reason.count == 4
        assert diagnostic.primary_span == then_blocks[3].span
        assert diagnostic.outer_span == then_blocks[0].span
        assert diagnostic.outer_label == "outer nested context"
        assert diagnostic.message == "nesting depth: 3 max allowed, 4 levels found"
        assert diagnostic.help == "use early returns and guard clauses to reduce nesting"

    def test_count_is_maximum_observed(self, tree, analyze):
        """違反中にさらに深くなった場合は最大値を報告する。"""
        config = LintConfig(max_depth=1, debug=False)
        root = tree.func(tree.block(tree.block(tree.block(tree.block()))))

        diagnostics, _ = analyze(config, root)

        assert len(diagnostics) == 1
        assert diagnostics[0].reason.count == 4
        assert diagnostics[0].message == "nesting depth: 1 max allowed, 2 to 4 levels found"

    def test_separate_regions_report_separately(self, tree, analyze):
        """閾値未満に戻った後の再違反は別の診断になる。"""
        config = LintConfig(max_depth=1, debug=False)
        root = tree.func(
            tree.block(tree.block()),
            tree.block(tree.block()),
        )

        diagnostics, _ = analyze(config, root)
        assert len(diagnostics) == 2

    def test_regions_under_same_anchor_report_separately(self, tree, analyze):
        """同じ外側コンテキストの下でも、閾値に戻るたびに別の診断になる。"""
        config = LintConfig(max_depth=1, debug=False)
        first = tree.block()
        second = tree.block()
        anchor = tree.block(first, second)

        diagnostics, _ = analyze(config, tree.func(anchor))

        assert [d.primary_span for d in diagnostics] == [first.span, second.span]
        assert [d.outer_span for d in diagnostics] == [anchor.span, anchor.span]

    def test_sibling_nested_ifs_in_loop(self, tree, analyze):
        config = LintConfig(max_depth=3, debug=False)
        root = tree.func(
            tree.loop(NodeKind.FOR, tree.nested_ifs(3), tree.nested_ifs(3))
        )

        diagnostics, _ = analyze(config, root)

        assert [d.reason.count for d in diagnostics] == [4, 4]

    def test_function_root_not_counted(self, tree, analyze):
        """最も外側の関数は深さに数えない。"""
        config = LintConfig(max_depth=0, debug=False)
        diagnostics, _ = analyze(config, tree.func())
        assert diagnostics == []

    def test_if_and_match_do_not_count(self, tree, analyze):
        """IF と MATCH 自体は数えず、アームのBLOCKは数える。"""
        config = LintConfig(max_depth=1, debug=False)
        root = tree.func(tree.match([tree.match([])]))

        diagnostics, analyzer = analyze(config, root)

        # func > match > arm(1) > match > arm(2)
        assert len(diagnostics) == 1
        assert diagnostics[0].reason.count == 2

    def test_loops_count(self, tree, analyze):
        """ループはすべて深さに数える。"""
        config = LintConfig(max_depth=2, debug=False)
        root = tree.func(
            tree.loop(NodeKind.WHILE, tree.loop(NodeKind.FOR, tree.loop(NodeKind.LOOP)))
        )
        diagnostics, _ = analyze(config, root)

        assert len(diagnostics) == 1
        assert diagnostics[0].reason.count == 3

    @pytest.mark.parametrize("ignore_closures, expected", [(True, 0), (False, 1)])
    def test_ignore_closures(self, tree, analyze, ignore_closures, expected):
        """ignore_closures でクロージャを数えるかが切り替わる。"""
        config = LintConfig(max_depth=1, ignore_closures=ignore_closures, debug=False)
        root = tree.func(tree.block(tree.closure()))

        diagnostics, _ = analyze(config, root)
        assert len(diagnostics) == expected

    def test_modules_and_impls_do_not_count(self, tree, analyze):
        """モジュールや型定義は深さに数えない。"""
        config = LintConfig(max_depth=1, debug=False)
        root = tree.node(
            NodeKind.MODULE,
            tree.node(NodeKind.IMPL, tree.func(tree.block()))
        )
        diagnostics, _ = analyze(config, root)
        assert diagnostics == []


class TestConsecutiveBranches:
    """連続 if-else 分岐の検査テスト。"""

    def test_chain_of_three_is_one_chain(self, tree, config, analyze):
        """if / else if / else は長さ3の1チェーン。"""
        diagnostics, analyzer = analyze(config, tree.func(tree.chain(3)))

        assert diagnostics == []
        assert [chain.length for chain in analyzer.chains] == [3]

    def test_sibling_ifs_do_not_share_counter(self, tree, config, analyze):
        """独立した if はそれぞれ別のチェーン。"""
        root = tree.func(tree.if_(), tree.if_())
        diagnostics, analyzer = analyze(config, root)

        assert diagnostics == []
        assert [chain.length for chain in analyzer.chains] == [1, 1]

    def test_chain_over_threshold(self, tree, config, analyze):
        """閾値を超えたチェーンで診断が1件。"""
        chain = tree.chain(5)
        diagnostics, analyzer = analyze(config, tree.func(chain))

        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert diagnostic.reason.kind is ReasonKind.CONSECUTIVE_BRANCHES
        assert diagnostic.reason.count == 5
        assert diagnostic.outer_label == "first if in sequence"
        assert diagnostic.outer_span == chain.children[0].span
        assert diagnostic.message == "consecutive if-else statements: 3 max allowed, 5 found"
        assert [c.length for c in analyzer.chains] == [5]

    def test_chain_without_else(self, tree, config, analyze):
        """else のないチェーンも else-if の数だけ分岐を数える。"""
        diagnostics, analyzer = analyze(config, tree.func(tree.chain(4, with_else=False)))

        assert len(diagnostics) == 1
        assert diagnostics[0].reason.count == 4

    def test_nested_chain_counts_separately(self, tree, config, analyze):
        """分岐内の if は外側のチェーンに加算しない。"""
        inner = tree.chain(2)
        outer = tree.if_(then=[inner], else_=[])
        diagnostics, analyzer = analyze(config, tree.func(outer))

        assert diagnostics == []
        assert sorted(c.length for c in analyzer.chains) == [2, 2]

    def test_else_branches_do_not_add_depth(self, tree, analyze):
        """else-if の連鎖はネスト深さを増やさない。"""
        config = LintConfig(max_depth=1, max_consecutive_branches=10, debug=False)
        diagnostics, _ = analyze(config, tree.func(tree.chain(6)))
        assert diagnostics == []


class TestMonotonicity:
    """閾値に対する単調性のテスト。"""

    def _sample(self, tree):
        return tree.func(
            tree.nested_ifs(5),
            tree.chain(6),
            tree.block(tree.loop(NodeKind.WHILE, tree.chain(4))),
        )

    def test_raising_depth_threshold_stays_inside_flagged_regions(self, tree, analyze):
        """max_depth を上げても、低い閾値で指摘された範囲の外に診断は出ない。"""
        root = self._sample(tree)
        nodes = {node.span: node for node in root.iter_nodes()}
        parents = {
            child.node_id: node
            for node in root.iter_nodes()
            for child in node.children
        }

        def enclosing_spans(span):
            node = nodes[span]
            spans = set()
            while node is not None:
                spans.add(node.span)
                node = parents.get(node.node_id)
            return spans

        previous = None
        for threshold in range(0, 8):
            config = LintConfig(
                max_depth=threshold,
                max_consecutive_branches=100,
                debug=False
            )
            diagnostics, _ = analyze(config, root)
            flagged = {d.primary_span for d in diagnostics}
            if previous is not None:
                for span in flagged:
                    assert previous & enclosing_spans(span)
            previous = flagged
        assert previous == set()

    def test_raising_branch_threshold_never_adds_diagnostics(self, tree, analyze):
        """max_consecutive_branches を上げても診断は増えない。"""
        root = self._sample(tree)
        previous = None
        for threshold in range(0, 8):
            config = LintConfig(
                max_depth=100,
                max_consecutive_branches=threshold,
                debug=False
            )
            diagnostics, _ = analyze(config, root)
            if previous is not None:
                assert len(diagnostics) <= previous
            previous = len(diagnostics)
        assert previous == 0

    def test_idempotent(self, tree, config, analyze):
        """同じ入力は同じ診断を同じ順で返す。"""
        root = self._sample(tree)
        first, _ = analyze(config, root)
        second, _ = analyze(config, root)
        assert first == second
        assert len(first) > 0


class TestMalformedSpans:
    """不正な範囲を持つノードのテスト。"""

    def test_synthetic_node_skipped(self, tree, analyze):
        """ファイルを持たないノードは数えないが、子は解析する。"""
        config = LintConfig(max_depth=1, debug=False)
        synthetic = Span("", 0, 0, 0, 0)
        root = tree.func(tree.block(tree.block(span=synthetic)))

        diagnostics, _ = analyze(config, root)
        assert diagnostics == []

    def test_children_of_skipped_node_still_analyzed(self, tree, analyze):
        config = LintConfig(max_depth=1, debug=False)
        empty = Span("test.c", 5, 1, 5, 1)
        inner = tree.block()
        skipped = tree.block(inner, span=empty)
        root = tree.func(tree.block(skipped))

        diagnostics, _ = analyze(config, root)
        assert len(diagnostics) == 1
        assert diagnostics[0].primary_span == inner.span


class TestStackProtocol:
    """enter / exit の整合性検査のテスト。"""

    def test_mismatched_exit(self, config):
        """先頭と異なるIDの exit はエラー。"""
        analyzer = NestingAnalyzer(config)
        analyzer.on_enter(1, NodeKind.FUNCTION, Span("a.c", 1, 1, 9, 2))
        analyzer.on_enter(2, NodeKind.BLOCK, Span("a.c", 2, 1, 8, 2))

        with pytest.raises(StackProtocolError) as exc_info:
            analyzer.on_exit(1)
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 1

    def test_mismatched_kind(self, config):
        analyzer = NestingAnalyzer(config)
        analyzer.on_enter(1, NodeKind.FUNCTION, Span("a.c", 1, 1, 9, 2))

        with pytest.raises(StackProtocolError):
            analyzer.on_exit(1, NodeKind.BLOCK)

    def test_exit_on_empty_stack(self, config):
        analyzer = NestingAnalyzer(config)
        with pytest.raises(StackProtocolError):
            analyzer.on_exit(1)

    def test_emit_with_open_context(self, config):
        """閉じていないコンテキストがある状態の emit_all はエラー。"""
        analyzer = NestingAnalyzer(config)
        analyzer.on_enter(1, NodeKind.FUNCTION, Span("a.c", 1, 1, 9, 2))

        with pytest.raises(UnflushedViolationError):
            analyzer.emit_all()

    def test_use_after_emit_requires_reset(self, tree, config):
        """emit_all 後は reset するまで使えない。"""
        analyzer = NestingAnalyzer(config)
        analyzer.emit_all()

        with pytest.raises(StackProtocolError):
            analyzer.on_enter(1, NodeKind.FUNCTION, Span("a.c", 1, 1, 9, 2))

        analyzer.reset()
        analyzer.on_enter(1, NodeKind.FUNCTION, Span("a.c", 1, 1, 9, 2))
        analyzer.on_exit(1)
        assert analyzer.emit_all() == []

    def test_reset_discards_partial_state(self, config):
        analyzer = NestingAnalyzer(config)
        analyzer.on_enter(1, NodeKind.FUNCTION, Span("a.c", 1, 1, 9, 2))
        analyzer.reset()

        assert analyzer.depth == 0
        assert analyzer.emit_all() == []


class FakeSourceText(SourceText):
    def snippet(self, span):
        return f"line {span.start_line}\nsecond line"


class TestDebugTrace:
    """デバッグトレースのテスト。"""

    def test_trace_emitted(self, tree, caplog):
        config = LintConfig(debug=True)
        block = tree.block()
        root = tree.func(block)

        with caplog.at_level(logging.DEBUG, logger=TRACE_LOGGER_NAME):
            analyzer = NestingAnalyzer(config, source_text=FakeSourceText())
            walk(root, analyzer)

        messages = [r.getMessage() for r in caplog.records if r.name == TRACE_LOGGER_NAME]
        # スニペットは先頭行のみ
        snippet = f"line {block.span.start_line}"
        assert any("push block" in m and m.endswith(snippet) for m in messages)
        assert any("pop func" in m for m in messages)
        assert all("second line" not in m for m in messages)

    def test_trace_filtered_by_location(self, tree, caplog):
        """debug_location_filter の範囲外はトレースしない。"""
        block = tree.block()
        root = tree.func(block)
        config = LintConfig(
            debug=True,
            debug_location_filter=LocationRange.from_span(root.span)
        )

        with caplog.at_level(logging.DEBUG, logger=TRACE_LOGGER_NAME):
            analyzer = NestingAnalyzer(config)
            walk(root, analyzer)

        messages = [r.getMessage() for r in caplog.records if r.name == TRACE_LOGGER_NAME]
        assert messages
        assert all(str(root.span) in m for m in messages)
        assert all(str(block.span) not in m for m in messages)

    def test_no_trace_when_disabled(self, tree, config, caplog, analyze):
        with caplog.at_level(logging.DEBUG, logger=TRACE_LOGGER_NAME):
            analyze(config, tree.func(tree.block()))
        assert not [r for r in caplog.records if r.name == TRACE_LOGGER_NAME]
