from __future__ import annotations

import json
import logging
import uuid
from datetime import date, timedelta

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse
from django.views.decorators.clickjacking import xframe_options_exempt
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import stores
from .composer import CompositionError, DocumentEnvironmentError
from .document import ConsultantInfo
from .forms import (
    LeadActivityForm,
    LeadFilterForm,
    LeadForm,
    LeadImportForm,
    MandateFilterForm,
    MandateForm,
)
from .lead_io import LeadImportError, export_filename, export_leads, parse_lead_file
from .models import Lead, Mandate
from .preview import build_preview
from .services.mandate_service import (
    build_document_input,
    build_editable_content,
    generate_mandate_document,
    resolve_fee_schedule,
)
from .stores import MandateConflictError

logger = logging.getLogger(__name__)

_FILE_CACHE: dict[str, tuple[bytes, str, str]] = {}
_FILE_CACHE_LIMIT = 200

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _save_content(content: bytes | str, content_type: str, filename: str) -> str:
    token = uuid.uuid4().hex
    if isinstance(content, str):
        stored = content.encode("utf-8")
    else:
        stored = bytes(content)
    while len(_FILE_CACHE) >= _FILE_CACHE_LIMIT:
        _FILE_CACHE.pop(next(iter(_FILE_CACHE)))
    _FILE_CACHE[token] = (stored, content_type, filename)
    return token


def _get_content(token: str) -> tuple[bytes, str, str] | None:
    return _FILE_CACHE.get(token)


def _attachment(content: bytes | str, content_type: str, filename: str) -> HttpResponse:
    response = HttpResponse(content, content_type=content_type)
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    response["Cache-Control"] = "no-store"
    return response


def landing(request: HttpRequest) -> HttpResponse:
    today = date.today()
    context = {
        "lead_count": stores.filter_leads().count(),
        "mandate_count": stores.filter_mandates().count(),
        "upcoming": stores.filter_leads(follow_up_start=today, follow_up_end=today + timedelta(days=7))
        .exclude(is_done=True)
        .order_by("follow_up_date")[:10],
    }
    return render(request, "mandates/landing.html", context)


# Leads ------------------------------------------------------------------------


def _filtered_leads(filter_form: LeadFilterForm):
    if not filter_form.is_valid():
        return stores.filter_leads()
    data = filter_form.cleaned_data
    return stores.filter_leads(
        status=data.get("status") or None,
        follow_up_start=data.get("follow_up_start"),
        follow_up_end=data.get("follow_up_end"),
        search_term=data.get("search"),
        discom=data.get("discom") or None,
    )


def lead_list(request: HttpRequest) -> HttpResponse:
    filter_form = LeadFilterForm(request.GET or None)
    context = {
        "filter_form": filter_form,
        "import_form": LeadImportForm(),
        "activity_form": LeadActivityForm(),
    }

    if request.method == "POST":
        import_form = LeadImportForm(request.POST, request.FILES)
        context["import_form"] = import_form
        if import_form.is_valid():
            upload = import_form.cleaned_data["lead_file"]
            try:
                rows = parse_lead_file(upload.read(), upload.name)
            except LeadImportError as exc:
                context["error"] = str(exc)
            else:
                imported = stores.bulk_add_leads(rows)
                logger.info("Imported %d leads from %s", imported, upload.name)
                context["message"] = f"Imported {imported} leads from {upload.name}."
                context["import_form"] = LeadImportForm()

    context["leads"] = _filtered_leads(filter_form)
    return render(request, "mandates/lead_list.html", context)


def lead_create(request: HttpRequest) -> HttpResponse:
    context = {"form": LeadForm()}
    if request.method != "POST":
        return render(request, "mandates/lead_form.html", context)

    form = LeadForm(request.POST)
    if not form.is_valid():
        context["form"] = form
        return render(request, "mandates/lead_form.html", context)

    stores.add_lead(**form.cleaned_data)
    return redirect("lead_list")


@require_GET
def lead_export(request: HttpRequest) -> HttpResponse:
    leads = _filtered_leads(LeadFilterForm(request.GET or None))
    return _attachment(export_leads(leads), XLSX_CONTENT_TYPE, export_filename())


@require_POST
def lead_mark_done(request: HttpRequest, lead_id: int) -> HttpResponse:
    get_object_or_404(Lead, pk=lead_id, is_deleted=False)
    stores.mark_as_done(lead_id)
    return redirect("lead_list")


@require_POST
def lead_delete(request: HttpRequest, lead_id: int) -> HttpResponse:
    get_object_or_404(Lead, pk=lead_id, is_deleted=False)
    stores.delete_lead(lead_id)
    return redirect("lead_list")


@require_POST
def lead_add_activity(request: HttpRequest, lead_id: int) -> HttpResponse:
    get_object_or_404(Lead, pk=lead_id, is_deleted=False)
    form = LeadActivityForm(request.POST)
    if form.is_valid():
        stores.add_activity(lead_id, form.cleaned_data["description"])
    return redirect("lead_list")


# Mandates ---------------------------------------------------------------------


def mandate_list(request: HttpRequest) -> HttpResponse:
    filter_form = MandateFilterForm(request.GET or None)
    status = search = None
    if filter_form.is_valid():
        status = filter_form.cleaned_data.get("status") or None
        search = filter_form.cleaned_data.get("search")
    context = {
        "filter_form": filter_form,
        "mandates": stores.filter_mandates(status=status, search_term=search),
    }
    return render(request, "mandates/mandate_list.html", context)


def _initial_from_lead(lead: Lead) -> dict:
    return {
        "lead_id": lead.pk,
        "client_name": lead.client_name,
        "company": lead.company,
        "kva": lead.kva,
        "address": lead.company_location,
    }


def _consultant_from_form(form: MandateForm) -> ConsultantInfo:
    logo = form.cleaned_data.get("consultant_logo")
    logo_bytes = None
    if logo:
        logo_bytes = logo.read()
        logo.seek(0)
    return ConsultantInfo(
        name=form.cleaned_data["consultant_name"],
        address=form.cleaned_data["consultant_address"],
        email=form.cleaned_data.get("consultant_email") or "",
        phone=form.cleaned_data.get("consultant_phone") or "",
        logo_bytes=logo_bytes,
    )


def _with_preview_defaults(request: HttpRequest, preview) -> MandateForm:
    """Rebind the form so the editable fields show the text being previewed."""
    data = request.POST.copy()
    data["subject_line"] = preview.subject_line
    data["work_scope"] = "\n".join(preview.work_scope)
    data["eligibility_criteria"] = "\n".join(preview.eligibility_criteria)
    data["terms_and_conditions"] = "\n".join(preview.terms_and_conditions)
    form = MandateForm(data, request.FILES)
    form.is_valid()
    return form


def _with_fresh_token(request: HttpRequest) -> MandateForm:
    """Rebind the form under a new request token so an edit makes a new mandate."""
    data = request.POST.copy()
    data["request_token"] = str(uuid.uuid4())
    form = MandateForm(data)
    form.is_valid()
    return form


def mandate_create(request: HttpRequest) -> HttpResponse:
    if request.method != "POST":
        initial = {}
        lead_id = request.GET.get("lead")
        if lead_id and lead_id.isdigit():
            initial = _initial_from_lead(get_object_or_404(Lead, pk=int(lead_id), is_deleted=False))
        return render(request, "mandates/mandate_form.html", {"form": MandateForm(initial=initial)})

    form = MandateForm(request.POST, request.FILES)
    context = {"form": form}
    if not form.is_valid():
        return render(request, "mandates/mandate_form.html", context)

    document = build_document_input(form.cleaned_data)
    content = build_editable_content(form.cleaned_data)
    consultant = _consultant_from_form(form)
    fee_schedule = resolve_fee_schedule(document)
    preview = build_preview(document, consultant, content=content, fee_schedule=fee_schedule)
    context["preview"] = preview

    action = request.POST.get("action")
    if action == "download_text":
        return _attachment(preview.text, "text/plain; charset=utf-8", preview.text_filename)

    if action != "download_pdf":
        context["form"] = _with_preview_defaults(request, preview)
        return render(request, "mandates/mandate_form.html", context)

    try:
        result = generate_mandate_document(
            document,
            consultant,
            _save_content,
            mandate_id=form.cleaned_data["request_token"],
            lead_id=form.cleaned_data.get("lead_id"),
            content=content,
        )
    except (CompositionError, DocumentEnvironmentError, MandateConflictError) as exc:
        context["error"] = str(exc)
        return render(request, "mandates/mandate_form.html", context)

    if result.created and result.mandate.lead_id:
        lead = Lead.objects.filter(pk=result.mandate.lead_id).first()
        if lead is not None and lead.status != Lead.Status.MANDATE_SENT:
            stores.update_lead(lead.pk, status=Lead.Status.MANDATE_SENT)

    context["mandate"] = result.mandate
    context["preview_url"] = reverse("preview_pdf", kwargs={"token": result.token})
    context["download_url"] = reverse("download_file", kwargs={"token": result.token})
    context["download_label"] = "Download PDF"
    context["download_filename"] = result.filename
    context["page_count"] = result.page_count
    context["form"] = _with_fresh_token(request)
    return render(request, "mandates/mandate_form.html", context)


@require_POST
def mandate_delete(request: HttpRequest, mandate_id: uuid.UUID) -> HttpResponse:
    get_object_or_404(Mandate, mandate_id=mandate_id, is_deleted=False)
    stores.delete_mandate(mandate_id)
    return redirect("mandate_list")


# Files ------------------------------------------------------------------------


@require_GET
@xframe_options_exempt
def preview_pdf(request: HttpRequest, token: str) -> HttpResponse:
    stored = _get_content(token)
    if not stored:
        return HttpResponse("PDF not found.", status=404)
    content, content_type, filename = stored
    if content_type != "application/pdf":
        return HttpResponse("Preview is not a PDF.", status=500)
    if not content.startswith(b"%PDF-"):
        snippet = repr(content[:12])
        return HttpResponse(f"Invalid PDF content. Starts with {snippet}.", status=500)
    response = HttpResponse(content, content_type="application/pdf")
    response["Content-Disposition"] = f'inline; filename="{filename}"'
    response["Content-Length"] = str(len(content))
    response["Cache-Control"] = "no-store"
    return response


@require_GET
def download_file(request: HttpRequest, token: str) -> HttpResponse:
    stored = _get_content(token)
    if not stored:
        return HttpResponse("File not found.", status=404)
    content, content_type, filename = stored
    if content_type == "application/pdf" and not content.startswith(b"%PDF-"):
        return HttpResponse("Invalid PDF content.", status=500)
    response = _attachment(content, content_type, filename)
    response["Content-Length"] = str(len(content))
    return response


@csrf_exempt
@require_http_methods(["GET", "POST"])
def api_pdf(request: HttpRequest) -> JsonResponse:
    if request.method == "GET":
        return JsonResponse(
            {
                "message": "PDF API endpoint - use POST to generate PDFs",
                "status": "Server-side PDF generation is not implemented",
                "documentation": {
                    "endpoint": "POST /api/pdf",
                    "body": {
                        "mandateData": "Mandate fields",
                        "consultantInfo": "Consultant letterhead fields",
                        "editableContent": "Subject, work scope, eligibility and terms overrides",
                    },
                },
            }
        )

    try:
        json.loads(request.body or b"{}")
    except ValueError:
        return JsonResponse({"success": False, "message": "Request body must be valid JSON."}, status=400)
    return JsonResponse(
        {
            "success": False,
            "message": "Server-side PDF generation is not implemented. Use the mandate form instead.",
            "fallback": {
                "url": reverse("mandate_create"),
                "message": "Open the mandate form to generate the PDF",
            },
        },
        status=501,
    )
