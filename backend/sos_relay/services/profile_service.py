import base64
import html

from fpdf import FPDF

from sos_relay.utils.filenames import sanitize_filename


def _latin1(text: str) -> str:
    """Encode to latin-1, replacing unsupported chars; fpdf built-in fonts are latin-1 only."""
    return text.encode("latin-1", errors="replace").decode("latin-1")


def render_profile_html(company_name: str, url: str) -> bytes:
    safe_url = html.escape(url, quote=True)
    title = html.escape(f"{company_name} - Business Profile")
    page = (
        "<!DOCTYPE html>\n"
        f'<html><head><meta charset="utf-8"><title>{title}</title>'
        f'<meta http-equiv="refresh" content="0; url={safe_url}"></head>'
        f'<body><p><a href="{safe_url}">{title}</a></p></body></html>\n'
    )
    return page.encode("utf-8")


def render_profile_pdf(company_name: str, jurisdiction: str, url: str, generated_at: str) -> bytes:
    """One-page PDF pointing at the registry profile of a business."""
    pdf = FPDF()
    pdf.set_margins(20, 20, 20)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 18)
    pdf.multi_cell(0, 10, _latin1(company_name or "Business Profile"), align="L", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(2)

    pdf.set_font("Helvetica", "", 11)
    pdf.set_text_color(80, 80, 80)
    if jurisdiction:
        pdf.cell(0, 7, _latin1(f"Jurisdiction: {jurisdiction}"), new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 7, _latin1(f"Retrieved: {generated_at}"), new_x="LMARGIN", new_y="NEXT")

    pdf.ln(3)
    pdf.set_draw_color(200, 200, 200)
    pdf.line(20, pdf.get_y(), 190, pdf.get_y())
    pdf.ln(5)

    pdf.set_font("Helvetica", "", 10)
    pdf.set_text_color(0, 0, 200)
    pdf.multi_cell(0, 5, _latin1(url), link=url, new_x="LMARGIN", new_y="NEXT")

    return bytes(pdf.output())


def build_profile_payload(mode: str, company_name: str, jurisdiction: str, url: str, generated_at: str) -> dict:
    """File-callback fields for a profile link, rendered per ``mode``."""
    stem = sanitize_filename(f"{company_name} - Business Profile")
    if mode == "html":
        content, content_type, ext = render_profile_html(company_name, url), "text/html", ".html"
    elif mode == "pdf":
        content = render_profile_pdf(company_name, jurisdiction, url, generated_at)
        content_type, ext = "application/pdf", ".pdf"
    else:
        return {"fileName": stem, "contentType": "text/uri-list", "sourceUrl": url}

    return {
        "fileName": stem + ext,
        "contentType": content_type,
        "base64Data": base64.b64encode(content).decode("ascii"),
        "sourceUrl": url,
    }
