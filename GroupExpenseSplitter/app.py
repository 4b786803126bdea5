import io
import logging
from datetime import date

from flask import Flask, abort, render_template, send_file
from xhtml2pdf import pisa

from analytics import generate_analytics
from errors import UnbalancedLedger
from firebase_store import load_group_snapshot
from summary import build_summary
from utils import format_currency

app = Flask(__name__)
app.jinja_env.filters["money"] = format_currency

logger = logging.getLogger(__name__)


# ------------------ HELPERS ------------------

def build_report(group_id):
    """Collect everything the summary page and the PDF report show."""
    try:
        snapshot = load_group_snapshot(group_id)
    except ValueError:
        abort(404)

    group = snapshot["group"]
    summary = build_summary(
        snapshot["expenses"],
        snapshot["shares"],
        snapshot["members"],
        currency=group["currency"],
        completed_settlements=snapshot["completed_settlements"]
    )
    analytics_result = generate_analytics(snapshot["members"], snapshot["expenses"], group["currency"])
    names = {m["member_id"]: m["display_name"] for m in snapshot["members"]}

    return {
        "group": group,
        "summary": summary,
        "expenses": snapshot["expenses"],
        "payer_name_map": names,
        "monthly_spending": analytics_result["analytics"]["monthly_spending"],
        "warnings": analytics_result["warnings"],
        "generated_on": date.today().strftime("%B %d, %Y")
    }


# ------------------ ROUTES ------------------

@app.route("/groups/<group_id>")
def group_summary(group_id):
    try:
        report = build_report(group_id)
    except UnbalancedLedger as e:
        return f"Ledger is unbalanced: {e}", 409
    return render_template("summary.html", for_pdf=False, **report)


# ------------------ PDF EXPORT ------------------

@app.route("/groups/<group_id>/export-pdf")
def export_pdf(group_id):
    try:
        report = build_report(group_id)
    except UnbalancedLedger as e:
        return f"Ledger is unbalanced: {e}", 409

    html_content = render_template("summary.html", for_pdf=True, **report)

    # Convert HTML to PDF
    pdf_buffer = io.BytesIO()
    result = pisa.CreatePDF(io.StringIO(html_content), dest=pdf_buffer)
    if result.err:
        logger.error("PDF generation failed for group %s", group_id)
        return "Could not generate PDF", 500
    pdf_buffer.seek(0)

    # send_file encodes non-ASCII names as an RFC 5987 filename*
    filename = report["group"]["name"].replace(" ", "_")
    return send_file(
        pdf_buffer,
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"{filename}_report.pdf"
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="0.0.0.0", port=5000)
