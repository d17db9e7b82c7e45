from django.urls import path

from .views import (
    api_pdf,
    download_file,
    landing,
    lead_add_activity,
    lead_create,
    lead_delete,
    lead_export,
    lead_list,
    lead_mark_done,
    mandate_create,
    mandate_delete,
    mandate_list,
    preview_pdf,
)

urlpatterns = [
    path("", landing, name="landing"),
    path("leads/", lead_list, name="lead_list"),
    path("leads/new/", lead_create, name="lead_create"),
    path("leads/export/", lead_export, name="lead_export"),
    path("leads/<int:lead_id>/done/", lead_mark_done, name="lead_mark_done"),
    path("leads/<int:lead_id>/delete/", lead_delete, name="lead_delete"),
    path("leads/<int:lead_id>/activity/", lead_add_activity, name="lead_add_activity"),
    path("mandates/", mandate_list, name="mandate_list"),
    path("mandates/new/", mandate_create, name="mandate_create"),
    path("mandates/<uuid:mandate_id>/delete/", mandate_delete, name="mandate_delete"),
    path("preview/<str:token>/", preview_pdf, name="preview_pdf"),
    path("download/<str:token>/", download_file, name="download_file"),
    path("api/pdf", api_pdf, name="api_pdf"),
]
