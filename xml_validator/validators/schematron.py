"""Schematron rule validation.

The schema is preprocessed with the ISO Schematron inclusion and abstract pattern
expansion steps shipped with lxml. The resulting patterns, rules and assertions are
compiled into XPath expressions and evaluated directly against the document, so that
every failure keeps a reference to the node its rule fired on.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterator, Literal

from lxml import etree, isoschematron
from lxml.etree import _Element as Element  # noqa
from lxml.etree import _ElementTree as ElementTree  # noqa

from ..exceptions import RuleEvaluationError, SchemaLoadError
from ..failures import Failure
from ..helpers.logger import LOG
from .base import SchemaSource, XmlValidator, parse_schema, schema_name

SCHEMATRON_NS = "http://purl.oclc.org/dsdl/schematron"
NS = {"sch": SCHEMATRON_NS}

ALL_PHASE = "#ALL"
DEFAULT_PHASE = "#DEFAULT"

# Query bindings that can be evaluated with XPath 1.0.
SUPPORTED_QUERY_BINDINGS = ("", "xslt", "xslt1", "xpath", "exslt")

# Variables available to XPath expressions, by name.
Variables = dict[str, Any]


def _sch(name: str) -> str:
    return f"{{{SCHEMATRON_NS}}}{name}"


# Inline markup allowed in assertion messages.
INLINE_TAGS = tuple(_sch(name) for name in ("emph", "dir", "span"))


# XSLT match patterns
#


def split_union(expression: str) -> list[str]:
    """
    Split an XPath expression on the top-level union operators.

    :param expression: XPath expression or XSLT match pattern.
    :return: The union branches with surrounding whitespace removed.
    """
    branches = []
    depth = 0
    quote: str | None = None
    start = 0
    for i, char in enumerate(expression):
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
        elif char == "|" and depth == 0:
            branches.append(expression[start:i].strip())
            start = i + 1
    branches.append(expression[start:].strip())
    return branches


def final_step(branch: str) -> str:
    """
    Return the last location step of a path without its predicates.

    :param branch: A path expression without top-level unions.
    :return: The last location step.
    """
    depth = 0
    quote: str | None = None
    step = []
    for char in branch:
        if quote:
            if char == quote:
                quote = None
            continue
        if char in "'\"":
            quote = char
        elif char in "([":
            if char == "[":
                depth += 1
                continue
            if depth == 0:
                step.append(char)
        elif char in ")]":
            if char == "]":
                depth -= 1
                continue
            if depth == 0:
                step.append(char)
        elif depth == 0:
            if char == "/":
                step = []
            else:
                step.append(char)
    return "".join(step).strip()


def is_node_step(step: str) -> bool:
    """
    Return True if the location step selects element-like nodes.

    Attributes, text and namespace nodes are not supported as rule contexts.

    :param step: The location step.
    :return: True if the step can be used as a rule context.
    """
    compact = step.replace(" ", "")
    return not (
        compact.startswith("@")
        or compact.startswith("attribute::")
        or compact.startswith("namespace::")
        or compact.endswith("text()")
    )


def pattern_to_xpath(branch: str) -> str:
    """
    Convert one branch of an XSLT match pattern to an XPath selecting all matching nodes.

    :param branch: A match pattern without top-level unions.
    :return: XPath expression evaluated from the document.
    """
    if branch.startswith("/"):
        return branch
    return f"//{branch}"


# Document node context
#
# lxml evaluates XPath with the root element as context node, also for element trees.
# Expressions that Schematron evaluates on the document node are rewritten so that
# their relative location paths start from the document node instead.

_XPATH_TOKEN = re.compile(
    r"""\s*(
    "[^"]*"|'[^']*'
    |\d+(?:\.\d*)?|\.\d+
    |\$[^\W\d][\w.\-]*(?::[^\W\d][\w.\-]*)?
    |\.\.|::|//|!=|<=|>=|[./@,()\[\]|+\-=<>*]
    |[^\W\d][\w.\-]*(?::(?:[^\W\d][\w.\-]*|\*))?
    )""",
    re.VERBOSE,
)

NODE_TYPES = ("comment", "text", "processing-instruction", "node")
# Functions defaulting to the context node whose result differs between the document node and the root element.
NAME_FUNCTIONS = ("name", "local-name", "namespace-uri")
# Tokens after which a name or '*' can't be an operator.
_OPERAND_PRECEDERS = ("@", "::", "(", "[", ",")
_OPERATORS = ("/", "//", "|", "+", "-", "=", "!=", "<", "<=", ">", ">=")


def tokenize(expression: str) -> list[str] | None:
    """
    Split an XPath 1.0 expression into tokens.

    :param expression: XPath expression.
    :return: The tokens without whitespace, None if the expression contains unknown characters.
    """
    tokens = []
    position = 0
    while expression[position:].strip():
        match = _XPATH_TOKEN.match(expression, position)
        if match is None:
            return None
        tokens.append(match.group(1))
        position = match.end()
    return tokens


def _is_name(token: str) -> bool:
    return token[0] == "_" or token[0].isalpha()


def from_document_node(expression: str) -> str:
    """
    Rewrite an XPath expression to be evaluated as if the document node were the context node.

    Relative location paths outside predicates are made absolute, and name functions
    without an argument are given the document node.

    :param expression: XPath expression.
    :return: Equivalent expression for any context node in the same document.
    """
    tokens = tokenize(expression)
    if tokens is None:
        return expression

    rewritten: list[str] = []
    brackets: list[str] = []
    previous: str | None = None
    previous_operator = False
    name_function = False
    for i, token in enumerate(tokens):
        following = tokens[i + 1] if i + 1 < len(tokens) else None
        follows_operand = previous is not None and previous not in _OPERAND_PRECEDERS and not previous_operator

        step = False
        operator = token in _OPERATORS
        if token == "*" and follows_operand:
            operator = True
        elif token in ("*", "@", ".", ".."):
            step = True
        elif _is_name(token):
            if follows_operand:
                operator = True  # and, or, div, mod
            elif following == "(" and token not in NODE_TYPES:
                after = tokens[i + 2] if i + 2 < len(tokens) else None
                name_function = token in NAME_FUNCTIONS and after == ")" and "[" not in brackets
            else:
                step = True

        if step and previous not in ("/", "//", "@", "::") and "[" not in brackets:
            rewritten.append("/")
        rewritten.append(token)
        if token == "(" and name_function:
            rewritten.append("/")
            name_function = False

        if token in ("(", "["):
            brackets.append(token)
        elif token in (")", "]") and brackets:
            brackets.pop()
        previous, previous_operator = token, operator
    return " ".join(rewritten)


# Compiled schema
#


@dataclass(frozen=True)
class CompiledXPath:
    """XPath expression compiled against the schema namespaces."""

    expression: str
    xpath: etree.XPath
    document_xpath: etree.XPath  # Evaluated as if the document node were the context node.

    def __call__(self, node: Element | ElementTree, variables: Variables) -> Any:
        xpath = self.xpath
        if isinstance(node, ElementTree):
            xpath, node = self.document_xpath, node.getroot()
        try:
            return xpath(node, **variables)
        except etree.XPathError as e:
            raise RuleEvaluationError(self.expression, str(e)) from e


@dataclass(frozen=True)
class Variable:
    """Schematron let variable."""

    name: str
    value: CompiledXPath


@dataclass(frozen=True)
class Assertion:
    """Schematron assert or report."""

    kind: Literal["assert", "report"]
    test: CompiledXPath
    message: tuple[str | CompiledXPath, ...]

    def fires(self, node: Element | ElementTree, variables: Variables) -> bool:
        """
        Return True if the assertion fails or the report succeeds for the node.

        :param node: Rule context node.
        :param variables: Variables in scope.
        :return: True if a failure must be reported.
        """
        result = bool(self.test(node, variables))
        return not result if self.kind == "assert" else result

    def render(self, node: Element | ElementTree, variables: Variables) -> str:
        """
        Render the message with value-of and name substitutions resolved.

        :param node: Rule context node.
        :param variables: Variables in scope.
        :return: Message with whitespace normalised.
        """
        text = "".join(part if isinstance(part, str) else str(part(node, variables)) for part in self.message)
        return " ".join(text.split())


@dataclass(frozen=True)
class Rule:
    """Schematron rule."""

    context: str
    match_document: bool  # The context includes the document node.
    match: CompiledXPath | None
    variables: tuple[Variable, ...]
    assertions: tuple[Assertion, ...]

    def context_nodes(self, document: ElementTree) -> list[Element | ElementTree]:
        """
        Return the nodes the rule fires on, in document order.

        :param document: XML element tree.
        :return: The context nodes, the element tree itself stands for the document node.
        """
        nodes: list[Element | ElementTree] = [document] if self.match_document else []
        if self.match is not None:
            for node in self.match(document.getroot(), {}):
                if not isinstance(node, Element):
                    raise RuleEvaluationError(self.context, "rule context must select elements")
                nodes.append(node)
        return nodes


@dataclass(frozen=True)
class Pattern:
    """Schematron pattern."""

    id: str | None
    variables: tuple[Variable, ...]
    rules: tuple[Rule, ...]


class SchematronCompiler:
    """Compile a preprocessed Schematron schema into patterns."""

    def __init__(self, name: str, root: Element) -> None:
        """
        Compile a preprocessed Schematron schema into patterns.

        :param name: Schema name used in error messages.
        :param root: The schema root element after inclusion and abstract pattern expansion.
        """
        self.name = name
        self.root = root
        self.namespaces = {
            ns.get("prefix"): ns.get("uri") for ns in root.iterfind("sch:ns", NS) if ns.get("prefix") is not None
        }
        self.abstract_rules = {
            rule.get("id"): rule for rule in root.iterfind(".//sch:rule[@abstract='true']", NS) if rule.get("id")
        }

    def error(self, reason: str) -> SchemaLoadError:
        """
        Create a schema load error for this schema.

        :param reason: Why the schema could not be compiled.
        :return: The error.
        """
        return SchemaLoadError(self.name, reason)

    def xpath(self, expression: str | None, element: Element, attribute: str) -> CompiledXPath:
        """
        Compile an XPath expression. Raise SchemaLoadError on failure.

        :param expression: The expression or None if the attribute is missing.
        :param element: The schema element the expression belongs to.
        :param attribute: The attribute holding the expression.
        :return: Compiled XPath.
        """
        if expression is None or not expression.strip():
            raise self.error(f"Missing @{attribute} on {etree.QName(element).localname} (line {element.sourceline})")
        document_expression = from_document_node(expression)
        try:
            xpath = etree.XPath(expression, namespaces=self.namespaces)
            document_xpath = (
                xpath
                if document_expression == expression
                else etree.XPath(document_expression, namespaces=self.namespaces)
            )
            return CompiledXPath(expression, xpath, document_xpath)
        except etree.XPathSyntaxError as e:
            raise self.error(f"Invalid XPath '{expression}': {e}") from e

    def check_query_binding(self) -> None:
        """Ensure the schema uses an XPath 1.0 query language."""
        binding = (self.root.get("queryBinding") or "").lower()
        if binding not in SUPPORTED_QUERY_BINDINGS:
            raise self.error(f"Unsupported query binding '{binding}'")

    def select_phase(self, phase: str | None) -> tuple[str, Element | None]:
        """
        Select the phase to be validated.

        :param phase: Requested phase id, '#DEFAULT', '#ALL' or None for the schema default.
        :return: The phase id and the phase element, None for '#ALL'.
        """
        if phase is None or phase == DEFAULT_PHASE:
            phase = self.root.get("defaultPhase") or ALL_PHASE
        if phase == ALL_PHASE:
            return phase, None
        for element in self.root.iterfind("sch:phase", NS):
            if element.get("id") == phase:
                return phase, element
        raise self.error(f"Unknown phase '{phase}'")

    def compile_variables(self, parent: Element) -> tuple[Variable, ...]:
        """
        Compile the let variables declared directly in a schema element.

        :param parent: The schema, phase, pattern or rule element.
        :return: The variables in declaration order.
        """
        return tuple(self.compile_variable(let) for let in parent.iterfind("sch:let", NS))

    def compile_variable(self, let: Element) -> Variable:
        """
        Compile one let variable.

        :param let: The let element.
        :return: The variable.
        """
        name = let.get("name")
        if not name:
            raise self.error(f"Missing @name on let (line {let.sourceline})")
        return Variable(name, self.xpath(let.get("value"), let, "value"))

    def compile_message(self, element: Element) -> list[str | CompiledXPath]:
        """
        Compile the mixed content of an assertion message.

        :param element: The assert, report or inline markup element.
        :return: Literal text and substitutions in order.
        """
        parts: list[str | CompiledXPath] = []
        if element.text:
            parts.append(element.text)
        for child in element:
            if isinstance(child.tag, str):
                if child.tag == _sch("value-of"):
                    select = child.get("select")
                    self.xpath(select, child, "select")
                    parts.append(self.xpath(f"string({select})", child, "select"))
                elif child.tag == _sch("name"):
                    path = child.get("path")
                    parts.append(self.xpath(f"name({path})" if path else "name()", child, "path"))
                elif child.tag in INLINE_TAGS:
                    parts.extend(self.compile_message(child))
                else:
                    parts.append("".join(child.itertext()))
            if child.tail:
                parts.append(child.tail)
        return parts

    def compile_assertion(self, element: Element) -> Assertion:
        """
        Compile an assert or report.

        :param element: The assert or report element.
        :return: The assertion.
        """
        test = element.get("test")
        # Compile the bare expression first to report syntax errors against it.
        self.xpath(test, element, "test")
        return Assertion(
            kind="assert" if element.tag == _sch("assert") else "report",
            test=self.xpath(f"boolean({test})", element, "test"),
            message=tuple(self.compile_message(element)),
        )

    def compile_rule_body(
        self, rule: Element, variables: list[Variable], assertions: list[Assertion], extending: tuple[str, ...]
    ) -> None:
        """
        Compile the lets, assertions and extended abstract rules of a rule in document order.

        :param rule: The rule element.
        :param variables: Compiled variables are appended here.
        :param assertions: Compiled assertions are appended here.
        :param extending: Ids of the abstract rules being inlined, to detect cycles.
        """
        for child in rule:
            if child.tag == _sch("let"):
                variables.append(self.compile_variable(child))
            elif child.tag in (_sch("assert"), _sch("report")):
                assertions.append(self.compile_assertion(child))
            elif child.tag == _sch("extends"):
                rule_id = child.get("rule")
                if rule_id not in self.abstract_rules:
                    raise self.error(f"Unknown abstract rule '{rule_id}'")
                if rule_id in extending:
                    raise self.error(f"Abstract rule '{rule_id}' extends itself")
                self.compile_rule_body(
                    self.abstract_rules[rule_id], variables, assertions, extending + (rule_id,)
                )

    def compile_rule(self, rule: Element) -> Rule:
        """
        Compile a concrete rule.

        :param rule: The rule element.
        :return: The rule.
        """
        context = rule.get("context")
        if context is None or not context.strip():
            raise self.error(f"Missing @context on rule (line {rule.sourceline})")

        match_document = False
        branches = []
        for branch in split_union(context):
            if branch == "/":
                match_document = True
                continue
            if not is_node_step(final_step(branch)):
                raise self.error(f"Rule context '{context}' must select elements")
            branches.append(pattern_to_xpath(branch))

        variables: list[Variable] = []
        assertions: list[Assertion] = []
        self.compile_rule_body(rule, variables, assertions, ())
        return Rule(
            context=context,
            match_document=match_document,
            match=self.xpath(" | ".join(branches), rule, "context") if branches else None,
            variables=tuple(variables),
            assertions=tuple(assertions),
        )

    def compile_pattern(self, pattern: Element) -> Pattern:
        """
        Compile a concrete pattern.

        :param pattern: The pattern element.
        :return: The pattern.
        """
        rules = [
            self.compile_rule(rule) for rule in pattern.iterfind("sch:rule", NS) if rule.get("abstract") != "true"
        ]
        return Pattern(pattern.get("id"), self.compile_variables(pattern), tuple(rules))

    def compile(self, phase: str | None) -> tuple[str, tuple[Variable, ...], tuple[Pattern, ...]]:
        """
        Compile the schema for the given phase.

        :param phase: Requested phase id or None for the schema default.
        :return: The selected phase, the schema and phase variables and the active patterns.
        """
        self.check_query_binding()
        phase, phase_element = self.select_phase(phase)
        variables = self.compile_variables(self.root)

        active = None
        if phase_element is not None:
            variables += self.compile_variables(phase_element)
            active = {a.get("pattern") for a in phase_element.iterfind("sch:active", NS)}

        patterns = []
        for pattern in self.root.iterfind("sch:pattern", NS):
            if pattern.get("abstract") == "true":
                continue
            if active is not None and pattern.get("id") not in active:
                continue
            patterns.append(self.compile_pattern(pattern))
        return phase, variables, tuple(patterns)


# Validator
#


def preprocess(name: str, schema: ElementTree, validate_schema: bool) -> Element:
    """
    Resolve includes and abstract patterns, and check the result against the ISO Schematron grammar.

    :param name: Schema name used in error messages.
    :param schema: The parsed schema.
    :param validate_schema: Check the schema against the ISO Schematron grammar.
    :return: The root element of the preprocessed schema.
    """
    if schema.getroot().tag != _sch("schema"):
        raise SchemaLoadError(name, f"Root element must be {{{SCHEMATRON_NS}}}schema")

    try:
        root = isoschematron.iso_dsdl_include(schema).getroot()
        root = isoschematron.iso_abstract_expand(root).getroot()
    except etree.XSLTError as e:
        LOG.exception("Failed to preprocess Schematron schema '%s'", name)
        raise SchemaLoadError(name, str(e)) from e
    if root is None:
        raise SchemaLoadError(name, "Schema preprocessing produced no result")

    if validate_schema:
        if getattr(isoschematron, "schematron_schema_valid_supported", True):
            grammar = isoschematron.schematron_schema_valid
            if not grammar(root):
                messages = "; ".join(f"line {e.line}: {e.message.strip()}" for e in grammar.error_log)
                raise SchemaLoadError(name, f"Invalid Schematron schema: {messages}")
        else:
            LOG.warning("ISO Schematron grammar is not available, schema '%s' is not checked", name)
    return root


class SchematronValidator(XmlValidator):
    """Validate documents against the assert and report rules of a Schematron schema."""

    def __init__(self, schema: SchemaSource, phase: str | None = None, *, validate_schema: bool = True) -> None:
        """
        Compile the Schematron rules. Raise SchemaLoadError on failure.

        :param schema: Schematron schema file or parsed schema.
        :param phase: Phase to validate, by default the schema default phase or all patterns.
        :param validate_schema: Check the schema against the ISO Schematron grammar.
        """
        self.schema = schema_name(schema)
        root = preprocess(self.schema, parse_schema(schema), validate_schema)
        self.phase, self._variables, self._patterns = SchematronCompiler(self.schema, root).compile(phase)
        LOG.info(
            "Compiled Schematron schema '%s' phase '%s' with %d pattern(s)",
            self.schema,
            self.phase,
            len(self._patterns),
        )

    @property
    def patterns(self) -> tuple[Pattern, ...]:
        """The active patterns in schema order."""
        return self._patterns

    @staticmethod
    def _bind(variables: tuple[Variable, ...], node: Element | ElementTree, scope: Variables) -> Variables:
        scope = dict(scope)
        for variable in variables:
            scope[variable.name] = variable.value(node, scope)
        return scope

    def _fire(self, document: ElementTree) -> Iterator[tuple[Element | ElementTree, Failure]]:
        root = document.getroot()
        # Schema, phase and pattern variables are evaluated on the document node.
        scope = self._bind(self._variables, document, {})
        for pattern in self._patterns:
            pattern_scope = self._bind(pattern.variables, document, scope)
            claimed: set[Element | ElementTree] = set()
            for rule in pattern.rules:
                for context in rule.context_nodes(document):
                    # A node is handled by the first matching rule of a pattern.
                    if context in claimed:
                        continue
                    claimed.add(context)
                    rule_scope = self._bind(rule.variables, context, pattern_scope)
                    # Failures on the document node are reported against the root element.
                    node = root if context is document else context
                    for assertion in rule.assertions:
                        if assertion.fires(context, rule_scope):
                            failure = Failure(assertion.render(context, rule_scope), node.sourceline or 0, node)
                            yield context, failure

    def _collect(self, document: ElementTree) -> list[Failure]:
        fired = list(self._fire(document))
        if len(fired) > 1:
            order = {node: i for i, node in enumerate(_iter_document(document))}
            fired.sort(key=lambda item: order.get(item[0], -1))
        return [failure for _, failure in fired]


def _iter_document(document: ElementTree) -> Iterator[Element | ElementTree]:
    root = document.getroot()
    yield document
    yield from reversed(list(root.itersiblings(preceding=True)))
    yield from root.iter()
    yield from root.itersiblings()
