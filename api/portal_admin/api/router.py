from fastapi import APIRouter

from portal_admin.api.routes import applications, blog, companies, content, dashboard, health, jobs, reports, users

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(dashboard.router, prefix="/admin/dashboard", tags=["dashboard"])
api_router.include_router(reports.router, prefix="/admin/reports", tags=["reports"])
api_router.include_router(users.router, prefix="/admin/users", tags=["users"])
api_router.include_router(jobs.router, prefix="/admin/jobs", tags=["jobs"])
api_router.include_router(companies.router, prefix="/admin/companies", tags=["companies"])
api_router.include_router(applications.router, prefix="/admin/applications", tags=["applications"])
api_router.include_router(blog.router, prefix="/admin/blog", tags=["blog"])
api_router.include_router(content.router, prefix="/admin/content", tags=["content"])
