"""PDF rendering for risk reports.

RiskReportPDF lays out a report as a header block (title, period, generation
time) followed by a list of sections:

- ``text``: heading plus paragraph
- ``table``: heading, column headers and rows
- ``risk-matrix``: 5x5 grid coloured by risk level
- ``chart``: bar chart of risk counts per level (matplotlib, Agg backend)
"""
import io
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from fpdf import FPDF
from fpdf.fonts import FontFace

# Import matplotlib with Agg backend for server-side rendering
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt  # noqa: E402

from riskreg.core.risk_scoring import LEVEL_LABELS, RiskLevel, level_label  # noqa: E402


# Level colors (RGB tuples) for matrix cells and table badges
LEVEL_COLORS: Dict[str, Tuple[int, int, int]] = {
    RiskLevel.VERY_LOW.value: (34, 197, 94),     # Green-500
    RiskLevel.LOW.value: (134, 239, 172),        # Green-300
    RiskLevel.MODERATE.value: (250, 204, 21),    # Yellow-400
    RiskLevel.HIGH.value: (249, 115, 22),        # Orange-500
    RiskLevel.VERY_HIGH.value: (220, 38, 38),    # Red-600
}
NA_COLOR = (243, 244, 246)      # Gray-100

# Header colors
HEADER_BG = (31, 41, 55)        # Gray-800
HEADER_TEXT = (255, 255, 255)   # White

# Section header colors
SECTION_BG = (243, 244, 246)    # Gray-100
SECTION_TEXT = (31, 41, 55)     # Gray-800

SYSTEM_NAME = "Risk Management System"


def pdf_text(value: Any) -> str:
    """Coerce a value to text the core Helvetica font can encode."""
    if value is None:
        return ""
    return str(value).encode("latin-1", "replace").decode("latin-1")


def level_to_color(level: Optional[str]) -> Tuple[int, int, int]:
    return LEVEL_COLORS.get(level or "", NA_COLOR)


def generate_level_chart(level_stats: Dict[str, int], width: float = 6, height: float = 2.6) -> bytes:
    """Render a PNG bar chart of risk counts per level."""
    levels = list(RiskLevel)
    counts = [level_stats.get(level.value, 0) for level in levels]
    colors = ['#%02x%02x%02x' % LEVEL_COLORS[level.value] for level in levels]

    fig, ax = plt.subplots(figsize=(width, height), dpi=120)
    bars = ax.bar([LEVEL_LABELS[level] for level in levels], counts, color=colors)
    for bar, count in zip(bars, counts):
        ax.annotate(
            str(count),
            (bar.get_x() + bar.get_width() / 2, bar.get_height()),
            ha='center', va='bottom', fontsize=8
        )
    ax.set_ylabel('Risks', fontsize=8)
    ax.tick_params(labelsize=8)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)
    ax.set_ylim(0, max(counts + [1]) * 1.2)
    fig.tight_layout()

    buffer = io.BytesIO()
    plt.savefig(buffer, format='png', facecolor='white', edgecolor='none')
    plt.close(fig)
    buffer.seek(0)
    return buffer.getvalue()


class RiskReportPDF(FPDF):
    """Sectioned PDF report for risk summaries, analytics and matrices."""

    def __init__(
        self,
        title: str,
        sections: List[Dict[str, Any]],
        period: Optional[str] = None,
        generated_at: Optional[datetime] = None
    ):
        """Initialize the PDF report.

        Args:
            title: Report title printed on the first page and in the page header
            sections: Ordered section dicts (see module docstring)
            period: Reporting period label, e.g. "January 2025"
            generated_at: Generation timestamp shown under the title
        """
        super().__init__(orientation='P', unit='mm', format='A4')
        self.title_text = pdf_text(title)
        self.sections = sections
        self.period = period
        self.generated_at = generated_at or datetime.now()

        self.set_auto_page_break(auto=True, margin=20)
        self.set_margins(15, 15, 15)

    def header(self):
        """Page header with the system name and report title."""
        self.set_font('helvetica', 'B', 9)
        self.set_text_color(*SECTION_TEXT)
        self.cell(90, 5, SYSTEM_NAME)
        self.cell(0, 5, self.title_text, align='R')
        self.ln(8)

    def footer(self):
        """Page footer with page numbers."""
        self.set_y(-15)
        self.set_font('helvetica', 'I', 8)
        self.set_text_color(128, 128, 128)
        self.cell(0, 5, f'Page {self.page_no()} of {{nb}}', align='C')
        self.set_y(-10)
        self.cell(0, 5, f'Generated by {SYSTEM_NAME}', align='C')

    def add_title_block(self):
        self.set_font('helvetica', 'B', 18)
        self.set_text_color(*SECTION_TEXT)
        self.multi_cell(0, 9, self.title_text, new_x="LMARGIN", new_y="NEXT")
        self.set_font('helvetica', '', 10)
        self.set_text_color(80, 80, 80)
        if self.period:
            self.cell(0, 6, f'Period: {pdf_text(self.period)}', new_x="LMARGIN", new_y="NEXT")
        self.cell(
            0, 6,
            f'Generated: {self.generated_at.strftime("%d %B %Y %H:%M")}',
            new_x="LMARGIN", new_y="NEXT"
        )
        self.ln(4)
        self.set_text_color(0, 0, 0)

    def _add_section_header(self, title: str):
        """Add a styled section header."""
        if self.get_y() > self.h - 50:
            self.add_page()
        self.set_fill_color(*SECTION_BG)
        self.set_text_color(*SECTION_TEXT)
        self.set_font('helvetica', 'B', 12)
        self.cell(0, 9, pdf_text(title), border=0, fill=True, new_x="LMARGIN", new_y="NEXT")
        self.set_draw_color(100, 100, 100)
        self.line(15, self.get_y(), 195, self.get_y())
        self.ln(3)
        self.set_text_color(0, 0, 0)

    def add_text_section(self, section: Dict[str, Any]):
        if section.get('title'):
            self._add_section_header(section['title'])
        self.set_font('helvetica', '', 10)
        self.multi_cell(0, 5, pdf_text(section.get('content', '')), new_x="LMARGIN", new_y="NEXT")
        self.ln(4)

    def add_table_section(self, section: Dict[str, Any]):
        if section.get('title'):
            self._add_section_header(section['title'])
        headers = section.get('headers', [])
        rows = section.get('rows', [])
        if not rows:
            self.set_font('helvetica', 'I', 9)
            self.cell(0, 6, 'No data available', new_x="LMARGIN", new_y="NEXT")
            self.ln(3)
            return

        level_column = section.get('level_column')
        self.set_font('helvetica', '', 8)
        heading_style = FontFace(emphasis="B", color=HEADER_TEXT, fill_color=HEADER_BG)
        with self.table(
            col_widths=section.get('col_widths'),
            headings_style=heading_style,
            line_height=5,
            text_align="LEFT"
        ) as table:
            header_row = table.row()
            for heading in headers:
                header_row.cell(pdf_text(heading))
            for row_values in rows:
                row = table.row()
                for index, value in enumerate(row_values):
                    if level_column is not None and index == level_column:
                        row.cell(
                            pdf_text(level_label(value)),
                            style=FontFace(fill_color=level_to_color(value))
                        )
                    else:
                        row.cell(pdf_text(value))
        self.ln(4)

    def add_matrix_section(self, section: Dict[str, Any]):
        """Draw the 5x5 matrix: impact rows top (5) to bottom (1), probability columns 1 to 5."""
        self._add_section_header(section.get('title') or 'Risk Matrix')
        grid = section.get('matrix_grid', [])
        cell_w, cell_h, label_w = 28, 14, 22
        if self.get_y() + cell_h * (len(grid) + 2) > self.h - 20:
            self.add_page()

        x0 = self.l_margin + label_w
        y = self.get_y()
        self.set_font('helvetica', 'B', 8)
        for row in grid:
            if not row:
                continue
            self.set_xy(self.l_margin, y)
            self.cell(label_w, cell_h, f'Impact {row[0]["impact"]}', align='C')
            for col_index, cell in enumerate(row):
                self.set_xy(x0 + col_index * cell_w, y)
                self.set_fill_color(*level_to_color(cell['level']))
                self.cell(cell_w, cell_h, '', border=1, fill=True)
                self.set_xy(x0 + col_index * cell_w, y + 2)
                self.set_font('helvetica', 'B', 11)
                self.cell(cell_w, 5, str(cell['count']), align='C')
                self.set_xy(x0 + col_index * cell_w, y + 8)
                self.set_font('helvetica', '', 6)
                self.cell(cell_w, 4, f"E={cell['exposure']}", align='C')
                self.set_font('helvetica', 'B', 8)
            y += cell_h

        self.set_xy(x0, y + 1)
        self.set_font('helvetica', 'B', 8)
        for probability in range(1, 6):
            self.cell(cell_w, 5, f'Probability {probability}', align='C')
        self.ln(9)

        legend = section.get('level_stats')
        if legend:
            self.set_font('helvetica', '', 8)
            for level in RiskLevel:
                self.set_fill_color(*LEVEL_COLORS[level.value])
                self.cell(4, 4, '', fill=True)
                self.cell(32, 4, f' {LEVEL_LABELS[level]}: {legend.get(level.value, 0)}')
            self.ln(8)

    def add_chart_section(self, section: Dict[str, Any]):
        if section.get('title'):
            self._add_section_header(section['title'])
        png = generate_level_chart(section.get('level_stats', {}))
        if self.get_y() > self.h - 90:
            self.add_page()
        self.image(io.BytesIO(png), x=self.l_margin, w=170)
        self.ln(4)

    def generate(self) -> bytes:
        """Generate the complete PDF report.

        Returns:
            PDF file as bytes
        """
        self.alias_nb_pages()
        self.add_page()
        self.add_title_block()

        renderers = {
            'text': self.add_text_section,
            'table': self.add_table_section,
            'risk-matrix': self.add_matrix_section,
            'chart': self.add_chart_section,
        }
        for section in self.sections:
            renderer = renderers.get(section.get('type'))
            if renderer is None:
                continue
            renderer(section)

        return bytes(self.output())
