import uuid
from datetime import date, timedelta
from decimal import Decimal
from io import BytesIO
from unittest import mock

import pandas as pd
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from PIL import Image

from . import stores, views
from .composer import (
    CompositionError,
    DocumentEnvironmentError,
    MandateComposer,
    RenderCursor,
    compose,
)
from .document import ConsultantInfo, EditableContent, MandateDocumentInput
from .fees import declared_schedule, flat_average_schedule, get_fee_policy
from .formatting import benefit_lines, format_inr, format_subject_line, mandate_filename
from .lead_io import LeadImportError, export_leads, parse_lead_file
from .models import Lead, Mandate
from .preview import build_preview
from .schemes import SchemeCatalog, build_catalog
from .services.mandate_service import generate_mandate_document
from .stores import MandateConflictError

TODAY = date(2025, 1, 15)
CONSULTANT = ConsultantInfo(
    name="Shree Subsidy Consultants",
    address="101 Business Park, Ahmedabad",
    email="info@shree.example",
    phone="+91 98250 00000",
)


def make_document(**overrides):
    data = {
        "client_name": "Ramesh Patel",
        "company": "M/s Mangalam Seeds Ltd",
        "address": "GIDC Estate, Mehsana",
        "kva": "150",
        "schemes": ["Interest Subsidy"],
    }
    data.update(overrides)
    return MandateDocumentInput.from_mapping(data)


def large_catalog(count=10, bullets=7):
    return build_catalog(
        (
            f"Scheme {index}",
            f"Scheme {index}",
            f"Scheme {index}",
            [f"Benefit line {line} of scheme {index}" for line in range(1, bullets + 1)],
        )
        for index in range(1, count + 1)
    )


class SubjectLineTests(SimpleTestCase):
    def test_no_schemes_uses_generic_phrase(self):
        self.assertEqual(
            format_subject_line([]),
            "Consulting fees for government subsidy work for government subsidy schemes "
            "for your new firm under the Atmanirbhar Gujarat Scheme 2022.",
        )

    def test_single_scheme(self):
        self.assertEqual(
            format_subject_line(["Interest Subsidy"]),
            "Consulting fees for government subsidy work for Interest Subsidy "
            "for your new firm under the Atmanirbhar Gujarat Scheme 2022.",
        )

    def test_two_schemes_joined_with_and(self):
        subject = format_subject_line(["Interest Subsidy", "Power Connection Charges"])
        self.assertIn("work for Interest Subsidy and Power Connection Charges benefits (PCC) for", subject)

    def test_three_schemes_use_serial_comma(self):
        subject = format_subject_line(
            ["Interest Subsidy", "Power Connection Charges", "Electric Duty Exemption"]
        )
        self.assertIn(
            "Interest Subsidy, Power Connection Charges benefits (PCC), and Electricity Duty Exemption (EDE)",
            subject,
        )

    def test_custom_policy(self):
        subject = format_subject_line(["Solar Subsidy"], policy="Gujarat Industrial Policy 2020")
        self.assertTrue(subject.endswith("under the Gujarat Industrial Policy 2020."))


class FormattingTests(SimpleTestCase):
    def test_filename_replaces_every_non_alphanumeric_character(self):
        self.assertEqual(
            mandate_filename("M/s Mangalam Seeds Ltd", TODAY),
            "Mandate_M_s_Mangalam_Seeds_Ltd_15-01-2025.pdf",
        )

    def test_unknown_scheme_has_title_and_no_bullets(self):
        self.assertEqual(benefit_lines(["Mystery Scheme"]), [("1. Mystery Scheme", [])])

    def test_known_scheme_bullets(self):
        ((title, bullets),) = benefit_lines(["Capital Subsidy"])
        self.assertEqual(title, "1. Capital Subsidy")
        self.assertEqual(len(bullets), 5)
        self.assertTrue(all(line.startswith("• ") for line in bullets))

    def test_indian_grouping(self):
        self.assertEqual(format_inr(350000), "3,50,000")
        self.assertEqual(format_inr(15000), "15,000")
        self.assertEqual(format_inr(0), "0")


class FeeScheduleTests(SimpleTestCase):
    def test_flat_average_total(self):
        self.assertEqual(flat_average_schedule(make_document(schemes=[])).total, Decimal(0))
        self.assertEqual(flat_average_schedule(make_document()).total, Decimal(15000))
        five = make_document(
            schemes=[
                "Interest Subsidy",
                "Power Connection Charges",
                "Electric Duty Exemption",
                "SGST Subsidy",
                "Rent",
            ]
        )
        schedule = flat_average_schedule(five)
        self.assertEqual(schedule.total, Decimal(75000))
        self.assertEqual(schedule.total_display, "Rs. 75,000")
        self.assertEqual(
            [row.amount for row in schedule.rows],
            ["Rs. 25,000", "Rs. 15,000", "Rs. 20,000", "Rs. 10,000", "Rs. 10,000"],
        )

    def test_declared_schedule_sums_fixed_fees_only(self):
        document = make_document(
            schemes=["Interest Subsidy", "Solar Subsidy"],
            fees={"Interest Subsidy": 30000},
            percentages={"Solar Subsidy": 5},
            fee_types={"Interest Subsidy": "fee", "Solar Subsidy": "percentage"},
        )
        schedule = declared_schedule(document)
        self.assertEqual(schedule.rows[0].amount, "Rs. 30,000")
        self.assertEqual(schedule.rows[1].structure, "Percentage Fee")
        self.assertEqual(schedule.rows[1].amount, "5% of subsidy amount")
        self.assertEqual(schedule.total, Decimal(30000))

    def test_unknown_policy(self):
        with self.assertRaises(ValueError):
            get_fee_policy("bogus")


class DocumentInputTests(SimpleTestCase):
    def test_duplicate_schemes_are_dropped_in_order(self):
        document = make_document(schemes=["Rent", "Interest Subsidy", "Rent"])
        self.assertEqual(document.schemes, ("Rent", "Interest Subsidy"))

    def test_mappings_are_read_only(self):
        document = make_document(fees={"Rent": 1000})
        with self.assertRaises(TypeError):
            document.fees["Rent"] = 5


class RenderCursorTests(SimpleTestCase):
    def test_page_break_resets_to_top_margin(self):
        cursor = RenderCursor(margin=50, page_width=600, page_height=800)
        self.assertEqual(cursor.offset, 50)
        cursor.advance(699)
        self.assertTrue(cursor.fits(1))
        self.assertFalse(cursor.fits(2))
        cursor.next_page()
        self.assertEqual(cursor.page_index, 1)
        self.assertEqual(cursor.offset, cursor.margin)


class ComposerTests(SimpleTestCase):
    def test_compose_returns_pdf_named_after_client(self):
        result = compose(make_document(client_name="M/s Mangalam Seeds Ltd"), CONSULTANT, today=TODAY)
        self.assertTrue(result.content.startswith(b"%PDF-"))
        self.assertEqual(result.filename, "Mandate_M_s_Mangalam_Seeds_Ltd_15-01-2025.pdf")
        self.assertEqual(result.content_type, "application/pdf")

    def test_header_and_sections_in_order(self):
        texts = compose(make_document(), CONSULTANT, today=TODAY).texts()
        self.assertEqual(texts[0], "Shree Subsidy Consultants")
        self.assertIn("Date: 15-01-2025", texts)
        headings = [
            "COMMERCIAL OFFER",
            "PROPOSED BENEFITS",
            "WORK SCOPE",
            "ELIGIBILITY CRITERIA",
            "OUR FEES",
            "TERMS & CONDITIONS",
        ]
        positions = [texts.index(heading) for heading in headings]
        self.assertEqual(positions, sorted(positions))
        self.assertEqual(texts[-1], "APPROVED & AUTHORIZED BY (Sign and Stamp)")

    def test_empty_optional_fields_render_not_specified(self):
        texts = compose(make_document(category="   "), CONSULTANT, today=TODAY).texts()
        for label in (
            "Type of Case",
            "Taluka Category",
            "Project Cost",
            "Industry",
            "Term Loan Amount",
            "Power Connection",
        ):
            self.assertIn(f"{label} | Not specified", texts)
        self.assertIn("KVA | 150", texts)
        self.assertFalse(any(text.endswith("| ") for text in texts))

    def test_fee_table_total(self):
        texts = compose(make_document(), CONSULTANT, today=TODAY).texts()
        self.assertIn("1. Interest Subsidy | Fixed Fee | Rs. 25,000", texts)
        self.assertIn("Total |  | Rs. 15,000", texts)

    def test_zero_schemes_omit_fee_table(self):
        texts = compose(make_document(schemes=[]), CONSULTANT, today=TODAY).texts()
        self.assertIn("No specific schemes selected", texts)
        self.assertFalse(any(text.startswith("Total |") for text in texts))
        self.assertNotIn("Service | Fee Structure | Amount", texts)

    def test_unknown_scheme_renders_single_line(self):
        texts = compose(make_document(schemes=["Mystery Scheme"]), CONSULTANT, today=TODAY).texts()
        index = texts.index("1. Mystery Scheme")
        self.assertFalse(texts[index + 1].startswith("•"))

    def test_empty_catalog_is_not_replaced_by_default(self):
        empty = SchemeCatalog({})
        texts = compose(make_document(schemes=["Rent"]), CONSULTANT, catalog=empty, today=TODAY).texts()
        index = texts.index("1. Rent")
        self.assertFalse(texts[index + 1].startswith("•"))
        self.assertNotIn("1. Rent Subsidy", texts)
        self.assertIn("work for Rent for your new firm", format_subject_line(["Rent"], empty))
        preview = build_preview(make_document(schemes=["Rent"]), CONSULTANT, catalog=empty)
        self.assertIn("work for Rent for your new firm", preview.subject_line)

    def test_long_benefit_list_paginates(self):
        catalog = large_catalog()
        schemes = [f"Scheme {index}" for index in range(1, 11)]
        result = compose(make_document(schemes=schemes), CONSULTANT, catalog=catalog, today=TODAY)

        self.assertGreater(result.page_count, 1)
        texts = result.texts()
        for index in range(1, 11):
            self.assertEqual(texts.count(f"{index}. Scheme {index}"), 1)
        pages = {line.text: line.page for line in result.lines}
        for index in range(1, 11):
            self.assertEqual(pages[f"{index}. Scheme {index}"], pages[f"• Benefit line 1 of scheme {index}"])
        self.assertTrue(all(line.page < result.page_count for line in result.lines))

    def test_same_input_same_day_gives_identical_bytes(self):
        document = make_document(schemes=["Interest Subsidy", "Rent"])
        first = compose(document, CONSULTANT, today=TODAY)
        second = compose(document, CONSULTANT, today=TODAY)
        self.assertEqual(first.content, second.content)

    def test_editable_content_overrides_defaults(self):
        content = EditableContent(
            subject_line="Custom subject",
            work_scope=EditableContent.lines_from_text("Site visit\n\nFile application"),
        )
        texts = compose(make_document(), CONSULTANT, content=content, today=TODAY).texts()
        self.assertIn("Subject: Custom subject", texts)
        self.assertIn("1. Site visit", texts)
        self.assertIn("2. File application", texts)

    def test_render_failure_names_section(self):
        with mock.patch.object(MandateComposer, "_write_table", side_effect=RuntimeError("boom")):
            with self.assertRaises(CompositionError) as ctx:
                compose(make_document(), CONSULTANT, today=TODAY)
        self.assertIn("commercial offer", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_fee_policy_failure_is_wrapped(self):
        def broken_policy(document):
            raise KeyError("fees")

        with self.assertRaises(CompositionError):
            compose(make_document(), CONSULTANT, today=TODAY, fee_policy=broken_policy)

    def test_logo_is_drawn(self):
        buffer = BytesIO()
        Image.new("RGB", (120, 60), "navy").save(buffer, format="PNG")
        consultant = ConsultantInfo(
            name=CONSULTANT.name,
            address=CONSULTANT.address,
            email=CONSULTANT.email,
            phone=CONSULTANT.phone,
            logo_bytes=buffer.getvalue(),
        )
        result = compose(make_document(), consultant, today=TODAY)
        self.assertTrue(result.content.startswith(b"%PDF-"))

    def test_unreadable_logo_is_skipped(self):
        consultant = ConsultantInfo(
            name=CONSULTANT.name,
            address=CONSULTANT.address,
            email=CONSULTANT.email,
            phone=CONSULTANT.phone,
            logo_bytes=b"not an image",
        )
        with self.assertLogs("mandates.composer", level="WARNING"):
            result = compose(make_document(), consultant, today=TODAY)
        self.assertTrue(result.content.startswith(b"%PDF-"))


class PreviewTests(SimpleTestCase):
    def test_preview_text_matches_document_lines(self):
        document = make_document(schemes=["Interest Subsidy", "Rent"])
        preview = build_preview(document, CONSULTANT, today=TODAY)
        rendered = compose(document, CONSULTANT, today=TODAY).texts()

        self.assertEqual(preview.subject_line, format_subject_line(document.schemes))
        self.assertEqual(preview.filename, "Mandate_Ramesh_Patel_15-01-2025.pdf")
        self.assertEqual(preview.text_filename, "Mandate_Ramesh_Patel_15-01-2025.txt")
        for line in ("1. Interest Subsidy", "2. Rent Subsidy", "PROPOSED BENEFITS", "Date: 15-01-2025"):
            self.assertIn(line, rendered)
            self.assertIn(line, preview.text)
        self.assertIn("Total | Rs. 30,000", preview.text)


class MandateServiceTests(TestCase):
    def setUp(self):
        self.saved = []

    def sink(self, content, content_type, filename):
        self.saved.append((content, content_type, filename))
        return f"token-{len(self.saved)}"

    def test_missing_sink_raises_before_composing(self):
        with mock.patch("mandates.services.mandate_service.compose") as composer:
            with self.assertRaises(DocumentEnvironmentError):
                generate_mandate_document(make_document(), CONSULTANT, None, mandate_id=uuid.uuid4())
        composer.assert_not_called()
        self.assertEqual(Mandate.objects.count(), 0)

    def test_retry_with_same_id_reuses_mandate(self):
        mandate_id = uuid.uuid4()
        first = generate_mandate_document(make_document(), CONSULTANT, self.sink, mandate_id=mandate_id)
        second = generate_mandate_document(make_document(), CONSULTANT, self.sink, mandate_id=mandate_id)

        self.assertTrue(first.created)
        self.assertFalse(second.created)
        self.assertEqual(Mandate.objects.count(), 1)
        self.assertEqual(len(self.saved), 2)
        self.assertEqual(first.token, "token-1")
        self.assertTrue(self.saved[0][0].startswith(b"%PDF-"))

    def test_reused_id_with_changed_details_is_refused(self):
        mandate_id = uuid.uuid4()
        generate_mandate_document(make_document(), CONSULTANT, self.sink, mandate_id=mandate_id)
        with mock.patch("mandates.services.mandate_service.compose") as composer:
            with self.assertRaises(MandateConflictError):
                generate_mandate_document(
                    make_document(company="Om Packaging"), CONSULTANT, self.sink, mandate_id=mandate_id
                )
        composer.assert_not_called()
        self.assertEqual(len(self.saved), 1)
        self.assertEqual(Mandate.objects.get().company, "M/s Mangalam Seeds Ltd")

    def test_composition_failure_stores_nothing(self):
        with mock.patch.object(MandateComposer, "_write_table", side_effect=RuntimeError("boom")):
            with self.assertRaises(CompositionError):
                generate_mandate_document(make_document(), CONSULTANT, self.sink, mandate_id=uuid.uuid4())
        self.assertEqual(self.saved, [])
        self.assertEqual(Mandate.objects.count(), 0)

    def test_mandate_row_mirrors_document(self):
        lead = stores.add_lead(company="M/s Mangalam Seeds Ltd", client_name="Ramesh Patel")
        result = generate_mandate_document(
            make_document(schemes=["Interest Subsidy", "Rent"]),
            CONSULTANT,
            self.sink,
            mandate_id=uuid.uuid4(),
            lead_id=lead.pk,
        )
        mandate = result.mandate
        self.assertEqual(mandate.schemes, ["Interest Subsidy", "Rent"])
        self.assertEqual(mandate.mandate_name, "M/s Mangalam Seeds Ltd - Interest Subsidy, Rent")
        self.assertEqual(mandate.lead_id, lead.pk)
        self.assertEqual(mandate.status, Mandate.Status.DRAFT)


class LeadStoreTests(TestCase):
    def setUp(self):
        today = date.today()
        self.hot = stores.add_lead(
            company="Shiv Plastics",
            client_name="Mahesh Shah",
            discom="UGVCL",
            status=Lead.Status.HOTLEAD,
            follow_up_date=today + timedelta(days=2),
        )
        self.new = stores.add_lead(
            company="Ganesh Textiles",
            client_name="Kiran Desai",
            discom="DGVCL",
            mobile_number="9876543210",
            follow_up_date=today + timedelta(days=20),
        )

    def test_filter_by_status_and_discom(self):
        self.assertEqual(list(stores.filter_leads(status=Lead.Status.HOTLEAD)), [self.hot])
        self.assertEqual(list(stores.filter_leads(discom="dgvcl")), [self.new])

    def test_filter_by_follow_up_range(self):
        today = date.today()
        leads = stores.filter_leads(follow_up_start=today, follow_up_end=today + timedelta(days=7))
        self.assertEqual(list(leads), [self.hot])

    def test_search_is_case_insensitive(self):
        self.assertEqual(list(stores.filter_leads(search_term="ganesh")), [self.new])
        self.assertEqual(list(stores.filter_leads(search_term="98765")), [self.new])

    def test_soft_delete_hides_lead(self):
        self.assertTrue(stores.delete_lead(self.hot.pk))
        self.assertNotIn(self.hot, stores.filter_leads())
        self.assertTrue(Lead.objects.filter(pk=self.hot.pk, is_deleted=True).exists())
        self.assertFalse(stores.delete_lead(self.hot.pk))

    def test_update_marks_lead_updated(self):
        lead = stores.update_lead(self.new.pk, status=Lead.Status.BUSY)
        self.assertEqual(lead.status, Lead.Status.BUSY)
        self.assertTrue(lead.is_updated)

    def test_activity_bumps_last_activity(self):
        activity = stores.add_activity(self.new.pk, "  Called, asked for GST certificate  ")
        self.new.refresh_from_db()
        self.assertEqual(activity.description, "Called, asked for GST certificate")
        self.assertEqual(self.new.last_activity_date, activity.timestamp)
        self.assertEqual(self.new.activities.count(), 1)

    def test_mark_as_done(self):
        self.assertTrue(stores.mark_as_done(self.hot.pk).is_done)


class MandateStoreTests(TestCase):
    def setUp(self):
        self.solar, _ = stores.add_mandate(
            make_document(company="Sun Agro", schemes=["Solar Subsidy"]), mandate_id=uuid.uuid4()
        )
        self.rent, _ = stores.add_mandate(
            make_document(company="Om Packaging", schemes=["Rent"], type_of_case="Expansion"),
            mandate_id=uuid.uuid4(),
        )

    def test_search_covers_schemes_and_optional_fields(self):
        self.assertEqual(list(stores.filter_mandates(search_term="solar")), [self.solar])
        self.assertEqual(list(stores.filter_mandates(search_term="expansion")), [self.rent])

    def test_filter_by_status(self):
        stores.update_mandate(self.rent.mandate_id, status=Mandate.Status.ACTIVE)
        self.assertEqual(list(stores.filter_mandates(status=Mandate.Status.ACTIVE)), [self.rent])
        self.assertEqual(list(stores.filter_mandates(status=[Mandate.Status.DRAFT])), [self.solar])

    def test_deleted_mandates_are_excluded(self):
        stores.delete_mandate(self.solar.mandate_id)
        self.assertEqual(list(stores.filter_mandates()), [self.rent])

    def test_same_id_different_content_raises(self):
        document = make_document(company="Sun Agro", schemes=["Solar Subsidy"], project_cost="2 Cr")
        with self.assertLogs("mandates.stores", level="WARNING"):
            with self.assertRaises(MandateConflictError):
                stores.add_mandate(document, mandate_id=self.solar.mandate_id)
        self.solar.refresh_from_db()
        self.assertEqual(self.solar.project_cost, "")

        same = make_document(company="Sun Agro", schemes=["Solar Subsidy"])
        mandate, created = stores.add_mandate(same, mandate_id=self.solar.mandate_id)
        self.assertFalse(created)
        self.assertEqual(mandate, self.solar)


class LeadImportTests(TestCase):
    CSV = (
        "con.no,KVA,Company Name,Client Name,Main Mobile Number,Lead Status,Next Follow-up Date,DISCOM Name\n"
        "30012345,150,Shiv Plastics,Mahesh Shah,9876543210,hotlead,15-01-2025,UGVCL\n"
        "30012346,80,,,9800000000,New,,PGVCL\n"
        "30012347,,Ganesh Textiles,,,Unknown,,\n"
    ).encode("utf-8")

    def test_parse_csv_maps_aliases(self):
        leads = parse_lead_file(self.CSV, "leads.csv")
        self.assertEqual(len(leads), 2)
        first = leads[0]
        self.assertEqual(first["consumer_number"], "30012345")
        self.assertEqual(first["kva"], "150")
        self.assertEqual(first["company"], "Shiv Plastics")
        self.assertEqual(first["mobile_number"], "9876543210")
        self.assertEqual(first["status"], Lead.Status.HOTLEAD)
        self.assertEqual(first["follow_up_date"], date(2025, 1, 15))
        self.assertEqual(first["discom"], "UGVCL")
        self.assertEqual(leads[1]["status"], Lead.Status.NEW)
        self.assertIsNone(leads[1]["follow_up_date"])

    def test_missing_identity_columns(self):
        with self.assertRaises(LeadImportError):
            parse_lead_file(b"KVA,Discom\n100,UGVCL\n", "leads.csv")

    def test_unsupported_extension(self):
        with self.assertRaises(LeadImportError):
            parse_lead_file(b"whatever", "leads.pdf")

    def test_export_uses_sheet_headers(self):
        lead = stores.add_lead(
            company="Shiv Plastics",
            client_name="Mahesh Shah",
            kva="150",
            notes="Asked for quotation",
            follow_up_date=date(2025, 2, 1),
        )
        frame = pd.read_excel(BytesIO(export_leads([lead])), engine="openpyxl", dtype=str)
        self.assertEqual(list(frame.columns)[:5], ["con.no", "KVA", "Connection Date", "Company Name", "Client Name"])
        self.assertEqual(frame.loc[0, "Company Name"], "Shiv Plastics")
        self.assertEqual(frame.loc[0, "Last Discussion"], "Asked for quotation")
        self.assertEqual(frame.loc[0, "Next Follow-up Date"], "2025-02-01")

        reimported = parse_lead_file(export_leads([lead]), "leads.xlsx")
        self.assertEqual(reimported[0]["follow_up_date"], date(2025, 2, 1))
        self.assertEqual(reimported[0]["notes"], "Asked for quotation")


class LeadViewTests(TestCase):
    def test_pages_render(self):
        for name in ("landing", "lead_list", "lead_create", "mandate_list"):
            response = self.client.get(reverse(name))
            self.assertEqual(response.status_code, 200, name)

    def test_create_lead(self):
        response = self.client.post(
            reverse("lead_create"),
            {
                "company": "Shiv Plastics",
                "client_name": "Mahesh Shah",
                "unit_type": "New",
                "status": "Follow-up",
                "mobile_number": "98765 43210",
            },
        )
        self.assertRedirects(response, reverse("lead_list"))
        lead = Lead.objects.get()
        self.assertEqual(lead.status, Lead.Status.FOLLOW_UP)

    def test_create_lead_requires_company_or_client(self):
        response = self.client.post(reverse("lead_create"), {"unit_type": "New", "status": "New"})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Lead.objects.exists())

    def test_import_leads(self):
        upload = SimpleUploadedFile("leads.csv", LeadImportTests.CSV, content_type="text/csv")
        response = self.client.post(reverse("lead_list"), {"lead_file": upload})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Imported 2 leads")
        self.assertEqual(Lead.objects.count(), 2)

    def test_import_rejects_executables(self):
        upload = SimpleUploadedFile("leads.exe", b"MZ", content_type="application/octet-stream")
        response = self.client.post(reverse("lead_list"), {"lead_file": upload})
        self.assertContains(response, "Executable files are not allowed.")

    def test_export_downloads_workbook(self):
        stores.add_lead(company="Shiv Plastics")
        response = self.client.get(reverse("lead_export"))
        self.assertEqual(response.status_code, 200)
        self.assertIn('attachment; filename="leads-export-', response["Content-Disposition"])
        self.assertTrue(response.content.startswith(b"PK"))

    def test_lead_actions(self):
        lead = stores.add_lead(company="Shiv Plastics")
        self.client.post(reverse("lead_add_activity", args=[lead.pk]), {"description": "Visited site"})
        self.client.post(reverse("lead_mark_done", args=[lead.pk]))
        lead.refresh_from_db()
        self.assertTrue(lead.is_done)
        self.assertIsNotNone(lead.last_activity_date)

        response = self.client.post(reverse("lead_delete", args=[lead.pk]))
        self.assertRedirects(response, reverse("lead_list"))
        self.assertEqual(self.client.post(reverse("lead_delete", args=[lead.pk])).status_code, 404)


class MandateViewTests(TestCase):
    def form_data(self, **overrides):
        data = {
            "request_token": str(uuid.uuid4()),
            "client_name": "Ramesh Patel",
            "company": "M/s Mangalam Seeds Ltd",
            "address": "GIDC Estate, Mehsana",
            "kva": "150",
            "schemes": ["Interest Subsidy", "Rent"],
            "consultant_name": CONSULTANT.name,
            "consultant_address": CONSULTANT.address,
            "consultant_email": CONSULTANT.email,
            "consultant_phone": CONSULTANT.phone,
        }
        data.update(overrides)
        return data

    def test_get_form(self):
        response = self.client.get(reverse("mandate_create"))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Mandate Generator")

    def test_prefill_from_lead(self):
        lead = stores.add_lead(company="Shiv Plastics", client_name="Mahesh Shah", kva="200")
        response = self.client.get(reverse("mandate_create") + f"?lead={lead.pk}")
        self.assertContains(response, "Shiv Plastics")
        self.assertEqual(response.context["form"].initial["lead_id"], lead.pk)

    def test_preview_fills_editable_text(self):
        response = self.client.post(reverse("mandate_create"), self.form_data(action="preview"))
        self.assertEqual(response.status_code, 200)
        preview = response.context["preview"]
        self.assertIn("Interest Subsidy and Rent Subsidy", preview.subject_line)
        self.assertEqual(response.context["form"]["subject_line"].value(), preview.subject_line)
        self.assertContains(response, "PROPOSED BENEFITS")
        self.assertFalse(Mandate.objects.exists())

    def test_download_text(self):
        response = self.client.post(reverse("mandate_create"), self.form_data(action="download_text"))
        self.assertEqual(response["Content-Type"], "text/plain; charset=utf-8")
        self.assertIn(".txt", response["Content-Disposition"])
        self.assertIn("WORK SCOPE", response.content.decode("utf-8"))

    def test_generate_pdf_and_download(self):
        data = self.form_data(action="download_pdf")
        response = self.client.post(reverse("mandate_create"), data)
        self.assertEqual(response.status_code, 200)
        filename = f"Mandate_Ramesh_Patel_{date.today().strftime('%d-%m-%Y')}.pdf"
        self.assertEqual(response.context["download_filename"], filename)

        download = self.client.get(response.context["download_url"])
        self.assertEqual(download.status_code, 200)
        self.assertTrue(download.content.startswith(b"%PDF-"))
        self.assertIn(f'attachment; filename="{filename}"', download["Content-Disposition"])

        preview = self.client.get(response.context["preview_url"])
        self.assertIn("inline;", preview["Content-Disposition"])

        self.client.post(reverse("mandate_create"), data)
        self.assertEqual(Mandate.objects.count(), 1)

    def test_generation_marks_lead_mandate_sent(self):
        lead = stores.add_lead(company="M/s Mangalam Seeds Ltd")
        self.client.post(reverse("mandate_create"), self.form_data(action="download_pdf", lead_id=lead.pk))
        lead.refresh_from_db()
        self.assertEqual(lead.status, Lead.Status.MANDATE_SENT)
        self.assertEqual(Mandate.objects.get().lead_id, lead.pk)

    def test_composition_error_keeps_form(self):
        with mock.patch.object(MandateComposer, "_write_table", side_effect=RuntimeError("boom")):
            response = self.client.post(reverse("mandate_create"), self.form_data(action="download_pdf"))
        self.assertEqual(response.status_code, 200)
        self.assertIn("commercial offer", response.context["error"])
        self.assertFalse(Mandate.objects.exists())

    @override_settings(MANDATE_FEE_POLICY="declared")
    def test_preview_uses_configured_fee_policy(self):
        data = self.form_data(
            action="preview",
            fee_type_interest_subsidy="fee",
            fee_interest_subsidy="45000",
            fee_type_rent="percentage",
            percentage_rent="5",
        )
        response = self.client.post(reverse("mandate_create"), data)
        text = response.context["preview"].text
        self.assertIn("1. Interest Subsidy | Fixed Fee | Rs. 45,000", text)
        self.assertIn("2. Rent | Percentage Fee | 5% of subsidy amount", text)
        self.assertIn("Total | Rs. 45,000", text)
        self.assertNotIn("Rs. 25,000", text)

        data["action"] = "download_text"
        download = self.client.post(reverse("mandate_create"), data)
        self.assertIn("Total | Rs. 45,000", download.content.decode("utf-8"))

    def test_preview_with_logo_keeps_form_valid(self):
        buffer = BytesIO()
        Image.new("RGB", (120, 60), "navy").save(buffer, format="PNG")
        logo = SimpleUploadedFile("logo.png", buffer.getvalue(), content_type="image/png")
        response = self.client.post(reverse("mandate_create"), self.form_data(action="preview", consultant_logo=logo))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["form"].errors, {})
        self.assertIn("preview", response.context)

    def test_reused_token_with_changed_details_is_refused(self):
        data = self.form_data(action="download_pdf")
        self.client.post(reverse("mandate_create"), data)

        data["company"] = "Om Packaging"
        response = self.client.post(reverse("mandate_create"), data)
        self.assertEqual(response.status_code, 200)
        self.assertIn("already used", response.context["error"])
        self.assertNotIn("download_url", response.context)
        self.assertEqual(Mandate.objects.get().company, "M/s Mangalam Seeds Ltd")

    def test_form_gets_new_token_after_generation(self):
        data = self.form_data(action="download_pdf")
        response = self.client.post(reverse("mandate_create"), data)
        token = response.context["form"]["request_token"].value()
        self.assertNotEqual(str(token), data["request_token"])
        self.assertEqual(response.context["form"]["company"].value(), "M/s Mangalam Seeds Ltd")

        data.update(request_token=str(token), company="Om Packaging")
        self.client.post(reverse("mandate_create"), data)
        self.assertEqual(
            sorted(Mandate.objects.values_list("company", flat=True)),
            ["M/s Mangalam Seeds Ltd", "Om Packaging"],
        )

    def test_file_cache_drops_oldest_entries(self):
        with mock.patch.object(views, "_FILE_CACHE", {}), mock.patch.object(views, "_FILE_CACHE_LIMIT", 2):
            first = views._save_content(b"one", "text/plain", "one.txt")
            second = views._save_content(b"two", "text/plain", "two.txt")
            third = views._save_content(b"three", "text/plain", "three.txt")
            self.assertIsNone(views._get_content(first))
            self.assertEqual(views._get_content(second), (b"two", "text/plain", "two.txt"))
            self.assertEqual(views._get_content(third), (b"three", "text/plain", "three.txt"))
            self.assertEqual(len(views._FILE_CACHE), 2)

    def test_delete_mandate(self):
        mandate, _ = stores.add_mandate(make_document(), mandate_id=uuid.uuid4())
        response = self.client.post(reverse("mandate_delete", args=[mandate.mandate_id]))
        self.assertRedirects(response, reverse("mandate_list"))
        self.assertFalse(stores.filter_mandates().exists())

    def test_unknown_file_token(self):
        self.assertEqual(self.client.get(reverse("download_file", args=["missing"])).status_code, 404)
        self.assertEqual(self.client.get(reverse("preview_pdf", args=["missing"])).status_code, 404)


class PdfApiTests(SimpleTestCase):
    def test_get_describes_endpoint(self):
        response = self.client.get(reverse("api_pdf"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["documentation"]["endpoint"], "POST /api/pdf")

    def test_post_is_not_implemented(self):
        response = self.client.post(reverse("api_pdf"), data="{}", content_type="application/json")
        self.assertEqual(response.status_code, 501)
        payload = response.json()
        self.assertFalse(payload["success"])
        self.assertEqual(payload["fallback"]["url"], reverse("mandate_create"))
