from __future__ import annotations

from slidegen.schemas import SlideSettings


FENCE = "```"

_SYSTEM_TEMPLATE = """You are an expert at creating Marp markdown presentations. You are highly skilled at extracting content from documents and creating beautiful, well-designed presentations.

Create a Marp markdown presentation using the following instructions:

The following is an example of how to create a Marp markdown presentation. All of the frontmatter in the example is also required for your response, other than the header and footer.

{theme_example}

Theme: {theme}

{detail}

{audience}

IMPORTANT GUIDELINES:
1. Always begin with a short title slide with a title, a short description, and author name (only if provided). The title should be an H1 header, the description should be a regular text, and the author name should be a regular text.
2. Ensure that the content on each slide fits inside the slide. Never create paragraphs.
3. Always use bullet points and other formatting options to make the content more readable.
4. Prefer multi-line code blocks over inline code blocks for any code longer than a few words. Even if the code is a single line, use a multi-line code block.
5. Do not end with --- (three dashes) on a new line, since this will end the presentation with an empty slide.

Make the slides look as beautiful and well-designed as possible. Use all of the formatting options available to you.

Enclose your response in triple backticks like this:

{fence}md
<your response here>
{fence}"""

THEME_CONFIGS: dict[str, dict] = {
    "default": {
        "use_lead_class": True,
        "has_invert_class": True,
        "has_tinytext_class": False,
        "has_title_class": False,
        "header_location": "(top left of the slide)",
        "footer_location": "(bottom left of the slide)",
        "description": "By default, the color scheme for each slide is light.",
    },
    "beam": {
        "use_lead_class": False,
        "has_invert_class": False,
        "has_tinytext_class": True,
        "has_title_class": True,
        "header_location": "(bottom left half of the slide)",
        "footer_location": "(bottom right half of the slide)",
        "description": (
            "IMPORTANT: You must use the above title class tag at the top of the title slide "
            "(<!-- _class: title -->).\n- Beam is a light color scheme based on the LaTeX Beamer theme."
        ),
    },
    "rose_pine": {
        "use_lead_class": True,
        "has_invert_class": False,
        "has_tinytext_class": False,
        "has_title_class": False,
        "header_location": "(top left of the slide)",
        "footer_location": "(bottom left of the slide)",
        "description": "Rose Pine is a dark color scheme.",
    },
    "gaia": {
        "use_lead_class": True,
        "has_invert_class": True,
        "has_tinytext_class": False,
        "has_title_class": False,
        "header_location": "(top left of the slide)",
        "footer_location": "(bottom left of the slide)",
        "description": "By default, the color scheme for each slide is light.",
    },
    "uncover": {
        "use_lead_class": True,
        "has_invert_class": True,
        "has_tinytext_class": False,
        "has_title_class": False,
        "header_location": "(top middle of the slide)",
        "footer_location": "(bottom middle of the slide)",
        "description": "By default, the color scheme for each slide is light.",
    },
    "graph_paper": {
        "use_lead_class": True,
        "has_invert_class": False,
        "has_tinytext_class": True,
        "has_title_class": False,
        "header_location": "(top left of the slide)",
        "footer_location": "(bottom left of the slide)",
        "description": "Graph Paper is a light color scheme.",
    },
}

DETAIL_PROMPTS = {
    "detailed": (
        "Extract comprehensive content from the document, preserving all key information and supporting details. "
        "Include all major sections and subsections from the source material, maintaining the depth of explanations, "
        "examples, data points, and contextual information. Create sufficient slides to accommodate all relevant "
        "content without crowding. For each topic in the source document, extract both main points and their "
        "supporting evidence or explanations. Ensure visual balance by limiting each slide to 6-8 bullet points or a "
        "comparable amount of content. Do not overflow individual slides with too much information or they will go "
        "off the slide."
    ),
    "medium": (
        "Extract the most significant information from each section of the document, focusing on main concepts and "
        "key supporting details. Select content that represents the core message and essential evidence without "
        "including every example or minor point from the source material. Consolidate related information into "
        "coherent slides, aiming for comprehensive coverage of major topics while omitting supplementary details. "
        "Prioritize information that directly supports the document's main arguments or conclusions. Limit each "
        "slide to 4-6 bullet points or a comparable amount of content."
    ),
    "minimal": (
        "Extract only the most essential information from the document, focusing exclusively on key conclusions, "
        "main arguments, and critical data points. Select content that communicates the core message in the most "
        "concise form possible. Consolidate major sections of the document into a limited number of focused slides. "
        "Omit supporting details, examples, and explanations unless absolutely necessary for basic comprehension. "
        "Prioritize high-level takeaways over process explanations or contextual information. Limit each slide to "
        "3-4 bullet points or a comparable amount of content."
    ),
}

AUDIENCE_PROMPTS = {
    "general": (
        "Format the presentation for a general audience with varying levels of background knowledge. Select the "
        "clearest and most accessible language from the document. When technical terms appear in the source, "
        "include brief definitions from the document when available. Prioritize content from the document that "
        "explains broader context and significance. Organize the extracted information as a narrative when "
        "possible, with a clear beginning, middle, and end. Format slides with minimal text and emphasize any "
        "visual elements from the original document."
    ),
    "academic": (
        "Format the presentation for an academic audience. Select terminology and detailed explanations from the "
        "document that preserve methodological details and theoretical frameworks. When extracting content, "
        "maintain the document's original citations, methodologies, and nuanced points. Preserve the logical "
        "structure of arguments found in the source material. When organizing information from the document, "
        "maintain appropriate context for all extracted data and findings. Format slides to balance detailed "
        "information with clarity."
    ),
    "technical": (
        "Format the presentation for a technical audience. Preserve technical terminology, specifications, and "
        "detailed explanations from the document. Prioritize content that focuses on implementation details, "
        "methodologies, and technical processes described in the source material. When extracting diagrams or code "
        "examples from the document, include the relevant explanatory text. Maintain the technical depth and "
        "precision of the source material. Organize the content in a logical sequence that preserves technical "
        "relationships and dependencies described in the document."
    ),
    "professional": (
        "Format the presentation for business professionals. Select terminology and concepts from the document that "
        "highlight practical applications and business relevance. Prioritize content from the document that "
        "demonstrates actionable insights, case studies, and results. Organize the extracted information with an "
        "emphasis on takeaways and strategic implications. Format slide content with concise bullet points rather "
        "than dense paragraphs. When selecting information from charts or data in the document, focus on metrics "
        "and trends most relevant to business decisions."
    ),
    "executive": (
        "Format the presentation for executive decision-makers. Select high-level information from the document "
        "that focuses on strategic implications and business impact. Prioritize content related to outcomes, ROI, "
        "and competitive advantages mentioned in the source material. Extract summary information rather than "
        "operational details unless specifically relevant to executive decisions. When selecting information from "
        "the document, focus on big-picture insights and key recommendations. Format slides with concise headline "
        "statements that capture the essential points from the document."
    ),
}


def _theme_header(theme: str, config: dict) -> str:
    lines = ["---", "marp: true", f"theme: {theme}"]
    if config["use_lead_class"]:
        lines.append("_class: lead")
    lines += [
        "paginate: true",
        f"header: This is an optional header {config['header_location']}",
        f"footer: This is an optional footer {config['footer_location']}",
        "---",
    ]
    if config["has_title_class"]:
        lines += ["", "<!-- _class: title -->", ""]
    lines += ["# Title", "", ""]
    return "\n".join(lines)


def _theme_body(config: dict) -> str:
    parts = ["## Heading 2", "", f"- {config['description']}"]
    if config["has_invert_class"]:
        parts += [
            "",
            "---",
            "",
            "<!-- _class: invert -->",
            "",
            "## Inverted color scheme",
            "",
            "- You can use the <!-- _class: invert --> tag at the top of a slide to create a dark mode slide.",
            "- Use this when you want to have a slide with a different color scheme than the rest of the presentation.",
            "- Do this when a slide should stand out.",
        ]
    if config["has_tinytext_class"]:
        parts += [
            "",
            "---",
            "",
            "<!-- _class: tinytext -->",
            "",
            "# Tinytext class",
            "",
            "- You can use the <!-- _class: tinytext --> tag at the top of a slide to make some text tiny.",
            "- This might be useful for References.",
        ]
    parts += [
        "",
        "---",
        "",
        "## Code blocks",
        "",
        "### Multi-line code blocks",
        "",
        f"{FENCE}python",
        'print("This is a code block")',
        'print("You can use triple backticks to create a code block")',
        'print("You can also use the language name to highlight the code block")',
        FENCE,
        "",
        "- **Another example:**",
        "",
        f"{FENCE}c",
        'printf("This is another code block");',
        'printf("Always specify the language name for code blocks");',
        FENCE,
        "",
        "---",
        "",
        "### Inline code blocks",
        "",
        "- `this` is an inline code block",
        "- You can use it using single backticks like this: `this`",
        "",
        "---",
        "",
        "## Creating new slides",
        "",
        "- To create a new slide, use a new line with three dashes like this:",
        "",
        FENCE,
        "---",
        "",
        "# New slide",
        FENCE,
        "",
        "---",
        "",
        "# Conclusion",
        "",
        "- You can use Markdown formatting to create **bold**, *italic*, and ~~strikethrough~~ text.",
        "> This is a block quote",
        "This is regular text",
    ]
    return "\n".join(parts)


def build_theme_example(theme: str) -> str:
    config = THEME_CONFIGS.get(theme, THEME_CONFIGS["default"])
    return f"{FENCE}md\n{_theme_header(theme, config)}{_theme_body(config)}\n{FENCE}"


def build_slide_prompt(theme: str, settings: SlideSettings) -> str:
    return _SYSTEM_TEMPLATE.format(
        theme_example=build_theme_example(theme),
        theme=theme,
        detail=DETAIL_PROMPTS.get(settings.slide_detail, ""),
        audience=AUDIENCE_PROMPTS.get(settings.audience, ""),
        fence=FENCE,
    )


def build_document_prompt(documents: list[tuple[str, str]]) -> str:
    blocks = ["The presentation should be based on the following content:", ""]
    for filename, text in documents:
        blocks += [f"FILE: {filename}", "---", text.strip(), "---", ""]
    blocks.append("Generate a comprehensive presentation with clear slides covering the key points from the provided content.")
    return "\n".join(blocks)
