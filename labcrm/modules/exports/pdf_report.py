"""
Statistical PDF report

Summary indicators, per-status / per-channel / per-procedure breakdowns and an
optional patient listing, generated with fpdf2.
"""

import logging
from datetime import datetime
from typing import Sequence

from fpdf import FPDF
from fpdf.fonts import FontFace

from labcrm.core.config import settings
from labcrm.modules.dashboard.aggregator import compute_stats
from labcrm.modules.exports.csv_export import br_date
from labcrm.modules.patients.schemas import PatientRecord, STATUS_LABELS, PROCEDURE_LABELS

logger = logging.getLogger(__name__)


def brl(value: float) -> str:
    """R$ 1.234,56"""
    s = f"{value:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {s}"


def _latin1(text: str) -> str:
    # core fonts only cover latin-1
    return (text or "").encode("latin-1", "replace").decode("latin-1")


class _ReportPDF(FPDF):
    product_name = "CRM"

    def footer(self) -> None:
        self.set_y(-12)
        self.set_font("Helvetica", size=8)
        self.set_text_color(150, 150, 150)
        self.cell(0, 6, _latin1(f"{self.product_name} - Página {self.page_no()} de {{nb}}"), align="C")


class PdfReportGenerator:
    PRIMARY_COLOR = (234, 88, 12)  # orange
    ROW_FILL = (255, 247, 237)
    TEXT_COLOR = (30, 30, 30)
    MARGIN = 14

    def __init__(self, product_name: str | None = None):
        self.product_name = product_name or settings.PRODUCT_NAME

    def generate(
        self,
        patients: Sequence[PatientRecord],
        period_label: str,
        include_patient_list: bool = True,
        include_observations: bool = True,
        generated_at: datetime | None = None,
    ) -> bytes:
        generated_at = generated_at or datetime.now()
        stats = compute_stats(patients)

        pdf = _ReportPDF()
        pdf.product_name = self.product_name
        pdf.set_margins(self.MARGIN, self.MARGIN, self.MARGIN)
        pdf.set_auto_page_break(auto=True, margin=18)
        pdf.add_page()

        self._header(pdf, period_label, generated_at)

        self._section(pdf, "Resumo")
        self._table(pdf, ["Indicador", "Valor"], [
            ["Total Faturado", brl(stats.total_revenue)],
            ["Fechamentos", str(stats.closed_count)],
            ["Ticket Médio", brl(stats.average_ticket)],
            ["Agendamentos", str(stats.scheduled_count)],
            ["Total de Pacientes", str(stats.total_count)],
            ["Taxa de Conversão", f"{stats.conversion_rate:.1f}%"],
        ])

        self._section(pdf, "Pacientes por Status")
        self._table(pdf, ["Status", "Quantidade", "% do Total"], [
            [s.label, str(s.count), f"{s.percentage:.1f}%"] for s in stats.by_status
        ])

        self._section(pdf, "Origem das Conversões (Fechados)")
        self._table(pdf, ["Origem", "Fechamentos", "Faturamento"], [
            [c.label, str(c.closed_count), brl(c.revenue)] for c in stats.by_channel
        ])

        self._section(pdf, "Faturamento por Procedimento (Fechados)")
        self._table(pdf, ["Procedimento", "Quantidade", "Faturamento"], [
            [b.label, str(b.count), brl(b.revenue)] for b in stats.by_procedure
        ])

        if include_patient_list:
            pdf.add_page()
            self._section(pdf, "Lista de Pacientes")
            heads = ["Nome", "Telefone", "Agendamento", "Status", "Procedimentos", "Valor"]
            widths = [34, 26, 22, 20, 50, 20]
            if include_observations:
                heads.append("Obs.")
                widths = [28, 22, 20, 18, 40, 18, 36]
            rows = []
            for p in patients:
                r = [
                    p.name,
                    p.phone,
                    br_date(p.appointment_date),
                    STATUS_LABELS.get(p.status, p.status),
                    ", ".join(PROCEDURE_LABELS.get(x, x) for x in p.procedures),
                    brl(p.closed_value) if p.closed_value else "-",
                ]
                if include_observations:
                    r.append(p.observations or "-")
                rows.append(r)
            self._table(pdf, heads, rows, font_size=7, col_widths=widths)

        pdf_bytes = bytes(pdf.output())
        logger.info(f"Report PDF generated: {len(patients)} patients, {pdf.page_no()} pages, {len(pdf_bytes)} bytes")
        return pdf_bytes

    def _header(self, pdf: FPDF, period_label: str, generated_at: datetime) -> None:
        pdf.set_fill_color(*self.PRIMARY_COLOR)
        pdf.rect(0, 0, pdf.w, 32, style="F")
        pdf.set_text_color(255, 255, 255)
        pdf.set_xy(self.MARGIN, 8)
        pdf.set_font("Helvetica", "B", 20)
        pdf.cell(0, 10, _latin1(self.product_name), new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", size=10)
        pdf.cell(pdf.epw / 2, 6, _latin1(f"Relatório gerado em {generated_at:%d/%m/%Y} às {generated_at:%H:%M}"))
        pdf.cell(pdf.epw / 2, 6, _latin1(f"Período: {period_label}"), align="R", new_x="LMARGIN", new_y="NEXT")
        pdf.set_y(40)

    def _section(self, pdf: FPDF, title: str) -> None:
        if pdf.get_y() > pdf.h - 57:
            pdf.add_page()
        pdf.set_text_color(*self.TEXT_COLOR)
        pdf.set_font("Helvetica", "B", 14)
        pdf.cell(0, 8, _latin1(title), new_x="LMARGIN", new_y="NEXT")
        pdf.ln(1)

    def _table(self, pdf: FPDF, heads: list[str], rows: list[list[str]], font_size: int = 10,
               col_widths: list[int] | None = None) -> None:
        pdf.set_font("Helvetica", size=font_size)
        pdf.set_text_color(*self.TEXT_COLOR)
        headings_style = FontFace(emphasis="BOLD", color=(255, 255, 255), fill_color=self.PRIMARY_COLOR)
        with pdf.table(
            headings_style=headings_style,
            cell_fill_color=self.ROW_FILL,
            cell_fill_mode="ROWS",
            col_widths=col_widths,
            text_align="LEFT",
        ) as table:
            for data in [heads] + rows:
                line = table.row()
                for datum in data:
                    line.cell(_latin1(str(datum)))
        pdf.ln(6)
