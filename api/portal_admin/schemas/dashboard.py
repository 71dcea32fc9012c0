from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class ActiveCountsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    active: int
    new_today: int = Field(alias="newToday")


class PendingCountsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    pending: int
    new_today: int = Field(alias="newToday")


class DashboardOverviewOut(BaseModel):
    users: ActiveCountsOut
    jobs: ActiveCountsOut
    companies: ActiveCountsOut
    applications: PendingCountsOut


class DailyCountOut(BaseModel):
    date: str
    count: int


class DashboardChartsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_registrations: list[DailyCountOut] = Field(alias="userRegistrations")
    job_postings: list[DailyCountOut] = Field(alias="jobPostings")
    applications: list[DailyCountOut]
    period: str


class RegistrationsOut(BaseModel):
    date: str
    registrations: int


class UserActivityReportOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: list[RegistrationsOut]
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")


class CategoryJobsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_name: str = Field(alias="categoryName")
    count: int


class JobApplicationsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_title: str = Field(alias="jobTitle")
    application_count: int = Field(alias="applicationCount")


class JobMarketReportOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    jobs_by_category: list[CategoryJobsOut] = Field(alias="jobsByCategory")
    applications_per_job: list[JobApplicationsOut] = Field(alias="applicationsPerJob")
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
