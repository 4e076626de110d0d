import logging

import pytest

from caption_agent.document import SoupDocument
from caption_agent.models import ElementCategory, MatchRule
from caption_agent.perception import DEFAULT_RULES, ElementLocator, PageStateClassifier, Perception
from tests.utils import dialog_page, plain_page


def classifier_for(html: str) -> PageStateClassifier:
    return PageStateClassifier(ElementLocator(SoupDocument(html)))


class TestPageStateClassifier:

    def test_active_with_caption_input(self):
        assert classifier_for(dialog_page()).is_target_surface_active() is True

    def test_active_with_image_only(self):
        html = dialog_page(caption_input=False, image=True)
        assert classifier_for(html).is_target_surface_active() is True

    def test_dialog_without_caption_or_image_is_inactive(self):
        html = dialog_page(caption_input=False, image=False)
        assert classifier_for(html).is_target_surface_active() is False

    def test_no_dialog_is_inactive_even_with_stray_matches(self):
        stray = '<textarea aria-label="Write a caption..."></textarea><img style="object-fit: cover">'
        assert classifier_for(plain_page(stray)).is_target_surface_active() is False

    def test_uploaded_image_is_scoped_to_dialog(self):
        assert classifier_for(dialog_page(image=True)).has_uploaded_image() is True
        # 导航栏里的 logo 不算
        assert classifier_for(dialog_page(image=False)).has_uploaded_image() is False
        assert classifier_for(plain_page("<img src='x.png'>")).has_uploaded_image() is False

    def test_control_surface_detection(self):
        assert classifier_for(dialog_page(surface=True)).has_control_surface() is True
        assert classifier_for(dialog_page()).has_control_surface() is False

    def test_debug_report(self):
        report = classifier_for(dialog_page(image=True)).debug_report()
        assert "create post page: True" in report
        assert "image uploaded: True" in report


class TestElementLocator:

    def test_first_rule_wins_over_document_order(self):
        html = dialog_page(caption_input=False, extra=(
            '<textarea placeholder="Write a caption..." id="by-placeholder"></textarea>'
            '<textarea aria-label="Write a caption..." id="by-label"></textarea>'
        ))
        found = ElementLocator(SoupDocument(html)).locate(ElementCategory.CAPTION_INPUT)
        assert found.node.attrs["id"] == "by-label"
        assert found.rule == DEFAULT_RULES[ElementCategory.CAPTION_INPUT][0]

    def test_locate_all_returns_every_match_of_winning_rule(self):
        html = plain_page('<div role="dialog"><img src="a"><img src="b"></div>')
        found = ElementLocator(SoupDocument(html)).locate_all("image-preview")
        assert [f.node.attrs["src"] for f in found] == ["a", "b"]

    def test_missing_category_returns_none(self):
        locator = ElementLocator(SoupDocument(dialog_page()))
        assert locator.locate(ElementCategory.ALT_TEXT_INPUT) is None
        assert locator.locate_all(ElementCategory.ALT_TEXT_INPUT) == []

    def test_malformed_rule_is_skipped(self, caplog):
        rules = {ElementCategory.CAPTION_INPUT: [MatchRule("textarea[[["), MatchRule("textarea")]}
        locator = ElementLocator(SoupDocument(dialog_page()), rules)
        with caplog.at_level(logging.WARNING):
            found = locator.locate(ElementCategory.CAPTION_INPUT)
        assert found is not None
        assert found.rule.selector == "textarea"
        assert "textarea[[[" in caplog.text

    def test_only_malformed_rules_means_no_match(self):
        rules = {ElementCategory.DIALOG_ROOT: [MatchRule("div:unknown-pseudo(")]}
        locator = ElementLocator(SoupDocument(dialog_page()), rules)
        assert locator.locate(ElementCategory.DIALOG_ROOT) is None
        assert PageStateClassifier(locator).is_target_surface_active() is False

    def test_contains_rule(self):
        rule = MatchRule.parse('div[role="dialog"] button:contains("Share")')
        assert rule == MatchRule('div[role="dialog"] button', contains="Share")
        html = plain_page('<div role="dialog"><button>Next</button><button id="s">Share</button></div>')
        locator = ElementLocator(SoupDocument(html), {ElementCategory.DIALOG_ROOT: [rule]})
        assert locator.locate(ElementCategory.DIALOG_ROOT).node.attrs["id"] == "s"

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            ElementLocator(SoupDocument(plain_page())).locate("share-button")

    def test_node_id_comes_from_snapshot(self):
        found = ElementLocator(SoupDocument(dialog_page())).locate(ElementCategory.CAPTION_INPUT)
        assert found.node_id == "20"


class TestInsertionPoint:

    def test_anchor_is_three_levels_above_caption_input(self):
        found = ElementLocator(SoupDocument(dialog_page())).insertion_point()
        assert found.category is ElementCategory.INSERTION_ANCHOR
        assert found.node.attrs["class"] == "caption-block"

    def test_falls_back_to_large_container(self):
        html = plain_page(
            '<div role="dialog"><div><div>'
            '<div data-cg-height="40" id="small"></div>'
            '<div data-cg-height="250" id="content"></div>'
            '</div></div></div>'
        )
        found = ElementLocator(SoupDocument(html)).insertion_point()
        assert found.category is ElementCategory.CONTENT_CONTAINER
        assert found.node.attrs["id"] == "content"

    def test_inline_style_height_counts(self):
        html = plain_page('<div role="dialog"><div><div><div style="height: 180px" id="c"></div></div></div></div>')
        found = ElementLocator(SoupDocument(html)).largest_containers()
        assert [f.node.attrs["id"] for f in found] == ["c"]

    def test_falls_back_to_dialog_root(self):
        html = plain_page('<div role="dialog" id="d"><p>hello</p></div>')
        found = ElementLocator(SoupDocument(html)).insertion_point()
        assert found.category is ElementCategory.DIALOG_ROOT
        assert found.node.attrs["id"] == "d"

    def test_nothing_outside_dialog(self):
        assert ElementLocator(SoupDocument(plain_page())).insertion_point() is None


class TestAncestorRules:

    def test_ancestor_levels(self):
        html = dialog_page()
        for levels, expected in ((1, "12"), (2, "11"), (3, "10")):
            rule = MatchRule('textarea[aria-label="Write a caption..."]', ancestor=levels)
            locator = ElementLocator(SoupDocument(html), {ElementCategory.INSERTION_ANCHOR: [rule]})
            assert locator.locate(ElementCategory.INSERTION_ANCHOR).node_id == expected

    def test_not_enough_ancestors_falls_through(self):
        rules = {ElementCategory.INSERTION_ANCHOR: [
            MatchRule("html", ancestor=2),
            MatchRule("form"),
        ]}
        found = ElementLocator(SoupDocument(dialog_page()), rules).locate(ElementCategory.INSERTION_ANCHOR)
        assert found.node.tag == "form"

    def test_shared_ancestor_is_reported_once(self):
        html = plain_page('<div id="p"><span><b>a</b></span><span><b>b</b></span></div>')
        rule = MatchRule("b", ancestor=2)
        found = ElementLocator(SoupDocument(html), {ElementCategory.INSERTION_ANCHOR: [rule]}).locate_all(
            ElementCategory.INSERTION_ANCHOR)
        assert [f.node.attrs["id"] for f in found] == ["p"]

    def test_contenteditable_caption_anchor(self):
        html = plain_page(
            '<div role="dialog"><div id="anchor"><div><div>'
            '<div contenteditable="true" role="textbox"></div>'
            '</div></div></div></div>'
        )
        found = ElementLocator(SoupDocument(html)).insertion_point()
        assert found.category is ElementCategory.INSERTION_ANCHOR
        assert found.node.attrs["id"] == "anchor"

    def test_describe(self):
        assert MatchRule("textarea", ancestor=3).describe() == "textarea (ancestor 3)"


class FakePage:
    """记录 evaluate 参数，返回预先准备的快照"""

    def __init__(self, *results):
        self.results = list(results)
        self.args = []

    async def evaluate(self, expression, arg=None):
        self.args.append(arg)
        return self.results.pop(0)


class TestPerceptionCapture:

    async def test_ids_continue_across_captures(self):
        page = FakePage(
            {"html": dialog_page(), "lastId": 40},
            {"html": dialog_page(), "lastId": 43},
        )
        perception = Perception()

        first = await perception.capture(page)
        second = await perception.capture(page)

        assert page.args[0] == ["data-cg-id", "data-cg-height", 0]
        assert page.args[1][2] == 40
        assert perception.last_element_id == 43
        assert ElementLocator(first).locate(ElementCategory.CAPTION_INPUT).node_id == "20"
        assert ElementLocator(second).insertion_point().node_id == "10"

    async def test_counter_never_goes_backwards(self):
        perception = Perception()
        perception.last_element_id = 50
        await perception.capture(FakePage({"html": plain_page(), "lastId": 50}))
        assert perception.last_element_id == 50
