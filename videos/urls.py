from django.urls import path
from .views import (
    UploadVideoView,
    GetVideoView,
    MasterPlaylistView,
    DeleteVideoView,
    JobDetailView,
)

urlpatterns = [
    path("upload", UploadVideoView.as_view(), name="upload_video"),
    path("get-video/<str:id>/<str:filename>", GetVideoView.as_view(), name="get_video"),
    path("get-masterFile/<str:id>/master.m3u8", MasterPlaylistView.as_view(), name="get_master"),
    path("delete-video", DeleteVideoView.as_view(), name="delete_video"),
    path("jobs/<str:job_id>/", JobDetailView.as_view(), name="job_detail"),
]
